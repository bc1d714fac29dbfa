"""Application interfaces (ports): outbound channel protocols.

Define contracts for infrastructure implementations (DIP).
No runtime imports from app.infrastructure.
"""

from app.application.interfaces.services import (
    IEmailSender,
    ISentMessageStore,
    ISmsSender,
    Sleeper,
)

__all__ = ["IEmailSender", "ISentMessageStore", "ISmsSender", "Sleeper"]

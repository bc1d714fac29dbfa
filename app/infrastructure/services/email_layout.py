"""HTML layout for automation emails (Jinja, autoescaped)."""

from __future__ import annotations

from typing import Any

import nh3
from jinja2 import Environment, Template

_LAYOUT = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{{ subject }}</title>
  </head>
  <body style="margin:0;padding:0;background:#f5f6f8;font-family:Arial,Helvetica,sans-serif;">
    <table role="presentation" width="100%" cellpadding="0" cellspacing="0">
      <tr>
        <td align="center" style="padding:24px;">
          <table role="presentation" width="600" cellpadding="0" cellspacing="0" style="background:#ffffff;border-radius:6px;">
            <tr>
              <td style="padding:20px 24px;border-bottom:1px solid #e5e7eb;font-size:18px;font-weight:bold;">{{ company.name }}</td>
            </tr>
            <tr>
              <td style="padding:24px;font-size:14px;line-height:1.5;color:#111827;">{{ body | safe }}</td>
            </tr>
            {% if company.phone or company.email %}
            <tr>
              <td style="padding:16px 24px;border-top:1px solid #e5e7eb;font-size:12px;color:#6b7280;">
                {{ company.name }}{% if company.phone %} &middot; {{ company.phone }}{% endif %}{% if company.email %} &middot; {{ company.email }}{% endif %}
              </td>
            </tr>
            {% endif %}
          </table>
        </td>
      </tr>
    </table>
  </body>
</html>
"""


class EmailLayoutRenderer:
    """Wraps a rendered email body in the company layout.

    The body is cleaned with nh3 (safe tags kept, scripts and handlers
    removed) and newlines in plain-text bodies become <br>. Subject and
    company fields are autoescaped.
    """

    def __init__(self, layout: str | None = None) -> None:
        self._env = Environment(autoescape=True)
        self._template: Template = self._env.from_string(layout or _LAYOUT)

    def render(self, subject: str, body_html: str, company: dict[str, Any]) -> str:
        body = body_html
        if "<" not in body:
            body = body.replace("\n", "<br>\n")
        return self._template.render(
            subject=subject,
            body=nh3.clean(body),
            company=company,
        )

"""Well-known SMTP provider presets.

Used by the configuration endpoints to pre-fill host, port and encryption
from the user's address.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MailProvider(BaseModel):
    """SMTP preset for a mail provider."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    key: str
    name: str
    host: str
    port: int = Field(..., ge=1, le=65535)
    use_encryption: bool
    note: str
    domains: tuple[str, ...] = ()


MAIL_PROVIDERS: dict[str, MailProvider] = {
    p.key: p
    for p in (
        MailProvider(
            key="gmail",
            name="Gmail",
            host="smtp.gmail.com",
            port=587,
            use_encryption=False,
            note="Requires 2-step verification and an app password",
            domains=("gmail.com",),
        ),
        MailProvider(
            key="qq",
            name="QQ Mail",
            host="smtp.qq.com",
            port=587,
            use_encryption=False,
            note="Enable SMTP and use the authorization code as the secret",
            domains=("qq.com",),
        ),
        MailProvider(
            key="163",
            name="NetEase 163",
            host="smtp.163.com",
            port=465,
            use_encryption=True,
            note="Enable SMTP and set a client authorization password",
            domains=("163.com",),
        ),
        MailProvider(
            key="126",
            name="NetEase 126",
            host="smtp.126.com",
            port=465,
            use_encryption=True,
            note="Enable SMTP and set a client authorization password",
            domains=("126.com",),
        ),
        MailProvider(
            key="outlook",
            name="Outlook",
            host="smtp-mail.outlook.com",
            port=587,
            use_encryption=False,
            note="Sign in with the Outlook account password",
            domains=("outlook.com", "hotmail.com"),
        ),
        MailProvider(
            key="yahoo",
            name="Yahoo Mail",
            host="smtp.mail.yahoo.com",
            port=587,
            use_encryption=False,
            note="Requires 2-step verification and an app password",
            domains=("yahoo.com",),
        ),
        MailProvider(
            key="tencent",
            name="Tencent Exmail",
            host="smtp.exmail.qq.com",
            port=587,
            use_encryption=False,
            note="Sign in with the enterprise mailbox password",
            domains=("exmail.qq.com",),
        ),
        MailProvider(
            key="aliyun",
            name="Aliyun Enterprise Mail",
            host="smtp.mxhichina.com",
            port=587,
            use_encryption=False,
            note="Sign in with the enterprise mailbox password",
            domains=("aliyun.com", "aliyun-inc.com"),
        ),
    )
}


def detect_provider(email: str) -> MailProvider | None:
    """Guess the provider from an address's domain.

    The longest matching domain wins, so exmail.qq.com is not taken for qq.com.

    Args:
        email: Address to inspect.

    Returns:
        Matching preset or None.
    """
    _, _, domain = email.lower().rpartition("@")
    if not domain:
        return None

    best: tuple[int, MailProvider] | None = None
    for provider in MAIL_PROVIDERS.values():
        for suffix in provider.domains:
            if domain == suffix or domain.endswith("." + suffix):
                if best is None or len(suffix) > best[0]:
                    best = (len(suffix), provider)
    return best[1] if best else None

"""Jinja2 message renderer for the rent notifier.

Maps a notification kind plus its context to subject, HTML body and
plain-text body. Rendering has no side effects: the same kind and context
always produce the same message.

Version: 2.0.0
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

from rent_notifier.config import get_settings
from rent_notifier.core.exceptions import TemplateRenderError
from rent_notifier.core.logger import get_logger
from rent_notifier.models.context import (
    CONTEXT_TYPES,
    MonthlyBillContext,
    NotificationContext,
    OverdueReminderContext,
    PaymentReminderContext,
    SystemNotificationContext,
    TransportTestContext,
)
from rent_notifier.models.notification import NotificationKind, RenderedMessage

logger = get_logger(__name__)

_CENT = Decimal("0.01")


class MessageRenderer:
    """Jinja2 renderer for notification messages.

    One HTML template per notification kind, all extending base.html.
    Plain-text bodies are built alongside for multipart delivery.
    """

    def __init__(
        self,
        template_dir: str | None = None,
        currency_symbol: str | None = None,
        app_base_url: str | None = None,
    ) -> None:
        """Initialize message renderer.

        Args:
            template_dir: Path to templates directory (uses config if None).
            currency_symbol: Symbol prefixed to amounts (uses config if None).
            app_base_url: Link target for buttons (uses config if None).

        Raises:
            TemplateRenderError: If the template directory does not exist.
        """
        settings = None
        if template_dir is None or currency_symbol is None or app_base_url is None:
            settings = get_settings()

        self.template_dir = Path(template_dir or settings.TEMPLATE_DIR)
        self.currency_symbol = currency_symbol if currency_symbol is not None else settings.CURRENCY_SYMBOL
        self.app_base_url = (app_base_url if app_base_url is not None else settings.APP_BASE_URL).rstrip("/")

        if not self.template_dir.is_dir():
            raise TemplateRenderError(f"Template directory not found: {self.template_dir}")

        self.env = self._init_jinja_env()
        logger.info(f"Message renderer initialized: {self.template_dir}")

    def _init_jinja_env(self) -> Environment:
        """Initialize Jinja2 environment with custom settings."""
        env = Environment(
            loader=FileSystemLoader(self.template_dir),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )

        env.filters["currency"] = self.format_currency
        env.filters["format_date"] = self._format_date
        env.filters["days"] = self._format_days
        env.globals["app_base_url"] = self.app_base_url

        return env

    # =========================================================================
    # Public API
    # =========================================================================
    def render(self, kind: NotificationKind, context: NotificationContext) -> RenderedMessage:
        """Render the message for a notification.

        Args:
            kind: Notification kind determining the template.
            context: Parameters for that kind.

        Returns:
            Rendered subject and bodies.

        Raises:
            TemplateRenderError: If the context does not match the kind, or
                the template is missing or fails to render.
        """
        expected = CONTEXT_TYPES[kind]
        if not isinstance(context, expected):
            raise TemplateRenderError(
                f"{kind.value} expects {expected.__name__}, got {type(context).__name__}",
                template_name=f"{kind.value}.html",
            )

        return RenderedMessage(
            subject=self.render_subject(kind, context),
            body_html=self.render_html(kind, context),
            body_text=self.render_text(kind, context),
        )

    def render_subject(self, kind: NotificationKind, context: NotificationContext) -> str:
        """Fixed subject pattern per kind."""
        if isinstance(context, PaymentReminderContext):
            return f"Rent payment reminder - due in {self._format_days(context.days_until_due)}"
        if isinstance(context, OverdueReminderContext):
            return f"Rent overdue - {self._format_days(context.overdue_days)} past due"
        if isinstance(context, MonthlyBillContext):
            return f"{context.year_month} monthly statement"
        if isinstance(context, SystemNotificationContext):
            return "System notification"
        return "Mail service test"

    def render_html(self, kind: NotificationKind, context: NotificationContext) -> str:
        """Render the HTML body from <kind>.html."""
        template_name = f"{kind.value}.html"

        try:
            logger.debug(f"Rendering HTML template: {template_name}")

            template = self.env.get_template(template_name)
            rendered = template.render(ctx=context, **self._extra_vars(context))

            logger.debug(f"HTML template rendered: {len(rendered)} bytes")
            return rendered

        except TemplateNotFound:
            logger.error(f"HTML template not found: {template_name}")
            raise TemplateRenderError(
                f"Template not found: {template_name}",
                template_name=template_name,
            ) from None

        except Exception as e:
            logger.error(f"Failed to render HTML template: {e}")
            raise TemplateRenderError(
                f"Failed to render {template_name}: {e}",
                template_name=template_name,
            ) from e

    def render_text(self, kind: NotificationKind, context: NotificationContext) -> str:
        """Plain-text body for the multipart alternative."""
        greeting = f"Hello {context.recipient_name}," if context.recipient_name else "Hello,"
        money = self.format_currency

        if isinstance(context, PaymentReminderContext):
            body = f"""
Your rent is due in {self._format_days(context.days_until_due)}.

Monthly rent: {money(context.monthly_amount)}
Due date: {self._format_date(context.due_date)}

Please arrange the payment before the due date and mark it as paid afterwards.
            """
        elif isinstance(context, OverdueReminderContext):
            body = f"""
Your rent is {self._format_days(context.overdue_days)} overdue.

Monthly rent: {money(context.monthly_amount)}
Due date: {self._format_date(context.due_date)}
Days overdue: {context.overdue_days}

If you have already paid, please update the record and ignore this message.
            """
        elif isinstance(context, MonthlyBillContext):
            record = context.record
            status = "paid" if record.is_paid else "unpaid"
            body = f"""
Statement for {context.year_month} ({status}):

Electricity: {record.electricity_usage} kWh x {money(context.electricity_rate)} = {money(record.electricity_cost)}
Cold water: {record.cold_water_usage} m3 x {money(context.cold_water_rate)} = {money(record.cold_water_cost)}
Hot water: {record.hot_water_usage} m3 x {money(context.hot_water_rate)} = {money(record.hot_water_cost)}
Rent: {money(context.monthly_amount)}

Total: {money(record.total_amount)}
            """
        elif isinstance(context, SystemNotificationContext):
            body = context.message
            if context.details:
                body = f"{body}\n\n{context.details}"
        elif isinstance(context, TransportTestContext):
            tested_at = context.tested_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
            body = f"""
Your mail settings work: this test message was delivered.

Tested at: {tested_at}
            """
        else:
            raise TemplateRenderError(f"No text body for {kind.value}")

        return f"{greeting}\n\n{body.strip()}\n\n{self.app_base_url}\n"

    # =========================================================================
    # Helpers
    # =========================================================================
    @staticmethod
    def _extra_vars(context: NotificationContext) -> dict[str, object]:
        if isinstance(context, MonthlyBillContext):
            return {"total_water_usage": context.total_water_usage}
        return {}

    def format_currency(self, amount: Decimal | int | float) -> str:
        """Format an amount as <symbol>1,234.50."""
        value = Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)
        return f"{self.currency_symbol}{value:,.2f}"

    @staticmethod
    def _format_date(value: date | datetime) -> str:
        """Jinja2 filter to format dates as YYYY-MM-DD."""
        return value.strftime("%Y-%m-%d")

    @staticmethod
    def _format_days(count: int) -> str:
        return "1 day" if count == 1 else f"{count} days"


_default_renderer: MessageRenderer | None = None


def render(kind: NotificationKind, context: NotificationContext) -> RenderedMessage:
    """Render with a process-wide renderer built from the settings."""
    global _default_renderer
    if _default_renderer is None:
        _default_renderer = MessageRenderer()
    return _default_renderer.render(kind, context)

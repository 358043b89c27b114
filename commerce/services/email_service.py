import asyncio
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Dict, List
from decimal import Decimal
import logging

from commerce.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for sending transactional emails over SMTP."""

    def __init__(
        self,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "Commerce Store"
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user
        self.from_name = from_name

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email over SMTP with STARTTLS.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body of the email
            text_content: Plain text body (optional fallback)

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.smtp_user or not self.smtp_password:
            logger.warning("Email not configured. SMTP credentials missing.")
            return False

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{self.from_name} <{self.from_email}>"
        msg['To'] = to_email

        if text_content:
            msg.attach(MIMEText(text_content, 'plain'))
        msg.attach(MIMEText(html_content, 'html'))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to_email, msg.as_string())
        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP Authentication failed. Check email credentials.")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {e}")
            return False
        except OSError as e:
            logger.error(f"Network error sending email: {e}")
            return False

        logger.info(f"Email sent successfully to {to_email}")
        return True

    def send_order_confirmation_email(
        self,
        to_email: str,
        order_number: str,
        customer_name: str,
        total_amount: Decimal,
        items: List[Dict],
        shipping_address: Dict,
        storefront_url: str = "http://localhost:3000"
    ) -> bool:
        """
        Send order confirmation email.

        Args:
            to_email: Customer email
            order_number: Order number
            customer_name: Customer's name
            total_amount: Order total
            items: Order lines with product_name, variant_name, quantity, total_price
            shipping_address: Delivery address snapshot
            storefront_url: Link back to the store

        Returns:
            True if sent successfully
        """
        subject = f"Order Confirmed - {order_number}"

        items_html = ""
        items_text = ""
        for item in items:
            name = item.get('product_name', 'Product')
            if item.get('variant_name'):
                name = f"{name} ({item['variant_name']})"
            line_total = Decimal(str(item.get('total_price', 0)))
            items_html += f"""
            <tr>
                <td style="padding: 8px; border-bottom: 1px solid #eee;">{name}</td>
                <td style="padding: 8px; border-bottom: 1px solid #eee; text-align: center;">{item.get('quantity', 1)}</td>
                <td style="padding: 8px; border-bottom: 1px solid #eee; text-align: right;">{line_total:,.2f}</td>
            </tr>
            """
            items_text += f"- {item.get('quantity', 1)} x {name}: {line_total:,.2f}\n"

        address_parts = [
            f"{shipping_address.get('first_name', '')} {shipping_address.get('last_name', '')}".strip(),
            shipping_address.get('address_line1', ''),
            shipping_address.get('address_line2', ''),
            f"{shipping_address.get('city', '')}, {shipping_address.get('state', '')} {shipping_address.get('zip_code', '')}",
            shipping_address.get('country', ''),
        ]
        address_lines = [p for p in address_parts if p and p.strip(", ")]

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2>Thank you for your order, {customer_name}!</h2>
            <p>Your order <strong>{order_number}</strong> has been received.</p>
            <table style="width: 100%; border-collapse: collapse;">
                <tr>
                    <th style="text-align: left; padding: 8px;">Item</th>
                    <th style="padding: 8px;">Qty</th>
                    <th style="text-align: right; padding: 8px;">Total</th>
                </tr>
                {items_html}
            </table>
            <p style="text-align: right;"><strong>Order total: {Decimal(str(total_amount)):,.2f}</strong></p>
            <h3>Shipping to</h3>
            <p>{"<br>".join(address_lines)}</p>
            <p><a href="{storefront_url}">Visit the store</a></p>
        </body>
        </html>
        """

        text_content = (
            f"Thank you for your order, {customer_name}!\n\n"
            f"Order {order_number}\n\n"
            f"{items_text}\n"
            f"Order total: {Decimal(str(total_amount)):,.2f}\n\n"
            f"Shipping to:\n" + "\n".join(address_lines) + "\n"
        )

        return self.send_email(to_email, subject, html_content, text_content)


def get_email_service() -> EmailService:
    """Get configured email service instance."""
    return EmailService(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME,
    )


# ==================== NOTIFICATION HELPER ====================

async def send_order_notifications(
    order_number: str,
    customer_email: Optional[str],
    customer_name: str,
    total_amount: Decimal,
    items: List[Dict],
    shipping_address: Dict,
    email_service: Optional[EmailService] = None,
) -> bool:
    """
    Send the order confirmation email.

    This is the function to call after order creation or payment confirmation.
    SMTP is blocking, so the send runs in a worker thread.
    """
    if not settings.ORDER_EMAILS_ENABLED or not customer_email:
        return False

    email_service = email_service or get_email_service()
    return await asyncio.to_thread(
        email_service.send_order_confirmation_email,
        to_email=customer_email,
        order_number=order_number,
        customer_name=customer_name,
        total_amount=total_amount,
        items=items,
        shipping_address=shipping_address,
        storefront_url=settings.FRONTEND_URL,
    )

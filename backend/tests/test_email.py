"""
Tests for template rendering and Resend delivery.
"""

import json

import httpx
import pytest

from conftest import make_sender
from enxoval_api.services.email import (
    EmailDeliveryError,
    EmailMessage,
    EmailNotConfiguredError,
    build_thankyou_message,
    deliver_quietly,
    render_markdown,
    substitute_variables,
)
from shared.utils.validators import format_brl

MESSAGE = EmailMessage(to="maria@example.com", subject="Obrigado!", html="<p>Oi</p>")


class TestRenderMarkdown:
    def test_headings_and_inline(self):
        html = render_markdown("# Título\n## Sub\nTexto **forte** e *leve*")

        assert html == "<h1>Título</h1>\n<h2>Sub</h2>\n<p>Texto <strong>forte</strong> e <em>leve</em></p>"

    def test_paragraphs_and_line_breaks(self):
        assert render_markdown("linha 1\nlinha 2\n\nnovo parágrafo") == (
            "<p>linha 1<br>linha 2</p>\n<p>novo parágrafo</p>"
        )

    def test_template_html_is_escaped(self):
        assert render_markdown("<script>x</script>") == "<p>&lt;script&gt;x&lt;/script&gt;</p>"
        assert render_markdown('Diga "oi"') == "<p>Diga &#34;oi&#34;</p>"

    def test_variable_values_are_escaped_and_not_markdown(self):
        html = render_markdown("Olá {{name}}", {"name": "**<b>Ana</b>**"})
        assert html == "<p>Olá **&lt;b&gt;Ana&lt;/b&gt;**</p>"

    def test_unknown_placeholder_left_alone(self):
        assert substitute_variables("{{name}} {{ other }}", {"name": "Ana"}) == "Ana {{ other }}"

    @pytest.mark.parametrize(
        "cents,expected",
        [(0, "R$ 0,00"), (5, "R$ 0,05"), (15000, "R$ 150,00"), (123456, "R$ 1.234,56"), (100000000, "R$ 1.000.000,00")],
    )
    def test_format_brl(self, cents, expected):
        assert format_brl(cents) == expected


class TestThankYouMessage:
    def test_default_template(self, db_session, seed_product, make_order):
        order = make_order([(seed_product, 3)])

        message = build_thankyou_message(db_session, order)

        assert message.to == "maria@example.com"
        assert message.subject == "Obrigado pela sua contribuição!"
        assert "Olá Maria Silva," in message.html
        assert "R$ 119,70" in message.html
        assert f"Pedido: {order.id}" in message.html


class TestEmailSender:
    async def test_send(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "re_123"})

        result = await make_sender(handler).send(MESSAGE)

        assert result == {"id": "re_123"}
        request = seen[0]
        assert request.headers["Authorization"] == "Bearer re_test_key"
        payload = json.loads(request.content)
        assert payload["to"] == ["maria@example.com"]
        assert payload["subject"] == "Obrigado!"
        assert payload["html"] == "<p>Oi</p>"

    async def test_not_configured(self):
        sender = make_sender(lambda r: httpx.Response(200, json={}), api_key="")
        with pytest.raises(EmailNotConfiguredError):
            await sender.send(MESSAGE)

    async def test_provider_refusal(self):
        sender = make_sender(lambda r: httpx.Response(422, json={"message": "invalid from"}))
        with pytest.raises(EmailDeliveryError):
            await sender.send(MESSAGE)

    async def test_deliver_quietly_never_raises(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        assert await deliver_quietly(MESSAGE, make_sender(handler)) is False
        assert await deliver_quietly(MESSAGE, make_sender(handler, api_key="")) is False
        assert await deliver_quietly(MESSAGE, make_sender(lambda r: httpx.Response(200, json={"id": "x"}))) is True

# agent.py - LLM signal extraction using the OpenAI API.
"""
This is "The Brain" - it reads a chat message (text and/or photo) and
extracts every trading signal in it.

Contract: extract() never raises. Any API, parsing or validation failure
is logged and treated as "no signals".

Update this file to:
- Change LLM model or prompt
- Add fields to the extracted signal
"""

import asyncio
import json
from typing import Any

from openai import OpenAI

from models import InboundMessage, Signal
from services import settings


VALID_ACTIONS = ("buy", "sell", "close")
VALID_ORDER_TYPES = ("market", "limit")


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    return int(number) if number else None


def parse_signals(content: str, message: InboundMessage) -> list[Signal]:
    """
    Parse the model's JSON answer into signals for this message.

    Raises:
        ValueError: content is not a JSON object
    """
    parsed = json.loads(content)
    if not isinstance(parsed, dict):
        raise ValueError("Expected a JSON object")

    raw_message = message.text or ""
    signals = []
    for item in parsed.get("signals") or []:
        if not isinstance(item, dict):
            continue

        action = str(item.get("action") or "").lower() or None
        if item.get("isSignal") is False:
            # Kept for reporting, never executable
            action = None
        order_type = str(item.get("orderType") or "market").lower()
        confidence = _to_float(item.get("confidence")) or 0.0

        signals.append(Signal(
            action=action if action in VALID_ACTIONS else None,
            symbol=item.get("symbol") or None,
            price=_to_float(item.get("price")),
            stop_loss=_to_float(item.get("stopLoss")),
            take_profit=_to_float(item.get("takeProfit")),
            quantity=_to_float(item.get("quantity")),
            order_type=order_type if order_type in VALID_ORDER_TYPES else "market",
            leverage=_to_int(item.get("leverage")),
            confidence=min(max(confidence, 0.0), 1.0),
            reasoning=item.get("reasoning"),
            source_chat_id=message.chat_id,
            raw_message=raw_message,
        ))
    return signals


class SignalExtractor:
    """
    OpenAI-powered extractor: message in, ordered list of signals out.

    Reports token usage for every analysed message through the notifier.
    """

    SYSTEM_PROMPT = """You are an expert in extracting cryptocurrency trading signals from messages (text and/or photo).
Your task is to determine if a message contains trading signals and extract all trading information from it.

A single message may contain multiple trading signals for different symbols or the same symbol.
For example: "BTC/USDT BUY 45000, ETH/USDT SELL 3000" contains 2 signals.

Response format must be JSON:
{
  "signals": [
    {
      "isSignal": boolean,
      "action": "buy" | "sell" | "close" | null,
      "symbol": "BTC/USDT" | null,
      "price": number | null,
      "stopLoss": number | null,
      "takeProfit": number | null,
      "quantity": number | null,
      "orderType": "market" | "limit",
      "leverage": number | null,
      "confidence": number (0-1),
      "reasoning": string
    }
  ],
  "hasMultipleSignals": boolean
}

Order type (orderType):
- "market" - if mentioned "buy set up", "market", "now", "immediately", "at market", "current price"
- "limit" - if a specific entry price is mentioned
- Default to "market" if not explicitly specified

Leverage (leverage):
- Extract the leverage value if mentioned (e.g. "leverage 10x", "10x", "with 10x leverage").
- If not specified, set leverage to null.

If this is not a trading signal, return an empty signals array and hasMultipleSignals: false.
Always return an array of signals, even if there's only one signal."""

    def __init__(self, notifier: Any = None, client: Any = None, model: str | None = None):
        if client is None:
            if not settings.OPENAI_API_KEY:
                raise ValueError("OPENAI_API_KEY not set in environment")
            client = OpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL)

        self.client = client
        self.model_name = model or settings.OPENAI_MODEL
        self.notifier = notifier
        print(f"[Agent] Signal extractor ready ({self.model_name})")

    @staticmethod
    def build_user_content(message: InboundMessage) -> list[dict]:
        """User turn: instructions, message text and the photo as an image part."""
        prompt = "Analyze the following message and extract ALL trading signals from it:\n\n"
        if message.text:
            prompt += f"Text: {message.text}\n\n"
        prompt += "Look for multiple signals in the same message. Each signal should be a separate object in the signals array.\n"
        prompt += "Respond in JSON format as specified in the instructions."

        content = [{"type": "text", "text": prompt}]
        if message.photo_base64:
            content.append({
                "type": "image_url",
                "image_url": {"url": f"data:image/jpeg;base64,{message.photo_base64}"}
            })
        return content

    async def _report_usage(self, usage: Any) -> None:
        if not usage or not self.notifier:
            return
        await self.notifier.send_log_message(
            "🔍 Message analysis completed\n\n"
            "📊 Token usage:\n"
            f"• Input: {usage.prompt_tokens} tokens\n"
            f"• Output: {usage.completion_tokens} tokens\n"
            f"• Total: {usage.total_tokens} tokens"
        )

    async def extract(self, message: InboundMessage) -> list[Signal]:
        """Extract all signals from a message. Returns [] on any failure."""
        try:
            response = await asyncio.to_thread(
                self.client.chat.completions.create,
                model=self.model_name,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {"role": "user", "content": self.build_user_content(message)},
                ],
                response_format={"type": "json_object"},
                temperature=0.1,
                max_tokens=3000,
            )

            content = response.choices[0].message.content if response.choices else None
            if not content:
                raise ValueError("No content received from OpenAI")

            await self._report_usage(response.usage)
            return parse_signals(content, message)

        except Exception as e:
            print(f"[Agent] Failed to analyze message for signals: {e}")
            return []

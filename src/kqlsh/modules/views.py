"""Console views of decoded payloads, shared by the kafka and zookeeper modules."""

from typing import Any

from kqlsh.codecs import DecodedMessage
from kqlsh.query.result import KQLResult
from kqlsh.render import Table

HEX_WIDTH = 16


def hex_dump(data: bytes, width: int = HEX_WIDTH) -> list[str]:
    """Offset / hex / ASCII lines, ``width`` bytes per line."""
    lines = []
    for start in range(0, len(data), width):
        chunk = data[start:start + width]
        hex_part = " ".join(f"{b:02x}" for b in chunk)
        text_part = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        lines.append(f"{start:08x}  {hex_part:<{width * 3 - 1}}  {text_part}")
    return lines


def message_view(message: DecodedMessage) -> Any:
    if not message.ok:
        return [f"[{message.format.value}] decode failed: {message.error}", *hex_dump(message.raw)]
    if message.fields is not None:
        rows = [{"field": name, "value": value} for name, value in message.fields.items()]
        return Table(rows, caption=f"format: {message.format.value}")
    if message.text is not None:
        return message.text
    return hex_dump(message.raw)


def result_view(result: KQLResult) -> Table:
    return Table(result.rows(), caption=result.summary())

# salubot/core/parser.py
"""
Extrae el objeto JSON de la respuesta libre del modelo.

El modelo a veces responde con texto alrededor, bloques ```json o comentarios
tipo `// ...` dentro del objeto. Esta función es pura: texto → dict o error.
"""
import json
import re

from salubot.core.errors import MalformedJson, NoJsonFound

FENCED_JSON = re.compile(r"```(?:json|JSON)\s*(.*?)```", re.DOTALL)

# Cadenas JSON (para no tocarlas) o comentarios `//` hasta el fin de línea
# o hasta el siguiente `,` / `}` / `]`.
_STRING_OR_COMMENT = re.compile(
    r'("(?:[^"\\]|\\.)*")|//[^\n,}\]]*'
)


def _json_span(raw_text: str) -> str:
    fenced = FENCED_JSON.search(raw_text)
    if fenced and "{" in fenced.group(1):
        text = fenced.group(1)
    else:
        text = raw_text

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise NoJsonFound(f"Sin objeto JSON en: {raw_text[:80]!r}")
    return text[start:end + 1]


def strip_comments(span: str) -> str:
    """Quita comentarios `//` que rompen json.loads, respetando strings."""
    return _STRING_OR_COMMENT.sub(
        lambda m: m.group(1) if m.group(1) is not None else "", span
    )


def extract_json(raw_text: str) -> dict:
    if not raw_text:
        raise NoJsonFound("Respuesta vacía del modelo")

    span = strip_comments(_json_span(raw_text))
    try:
        data = json.loads(span)
    except json.JSONDecodeError as e:
        raise MalformedJson(f"JSON inválido: {e}") from e

    if not isinstance(data, dict):
        raise MalformedJson(f"Se esperaba un objeto, llegó {type(data).__name__}")
    return data

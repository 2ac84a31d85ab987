"""
Prompt - компактный промпт перевода (протокол TOON/1).

Системный блок кодирует языки, правила и контекст (ключ перевода),
пользовательский блок оборачивает исходный текст в тройные кавычки.
"""

from typing import Dict, List, Optional

PROTOCOL_TAG = "TOON/1"
RULES = "RULES:KEEP_MD,KEEP_VARS,NO_QUOTES,NO_FENCES,NO_LABELS,NO_ECHO,NO_PREFIX"
OUTPUT = "OUT:TEXT_ONLY"
VARS = "VARS:{{x}},{x},%{x},%s,%d,{0},${x}"


def build_system_prompt(target_lang: str, source_lang: str,
                        context: Optional[str] = None) -> str:
    context_line = f"CTX:{context}" if context else "CTX:-"
    return "\n".join([
        PROTOCOL_TAG,
        f"SRC:{source_lang}",
        f"TGT:{target_lang}",
        RULES,
        OUTPUT,
        VARS,
        context_line,
    ])


def build_user_prompt(text: str) -> str:
    return f'"""{text}"""'


def build_prompt(text: str, target_lang: str, source_lang: str,
                 context: Optional[str] = None) -> str:
    """Полный промпт одной строкой (для оценки токенов)."""
    return "\n".join([
        build_system_prompt(target_lang, source_lang, context),
        build_user_prompt(text),
    ])


def build_messages(text: str, target_lang: str, source_lang: str,
                   context: Optional[str] = None) -> List[Dict[str, str]]:
    """Сообщения в формате chat completions."""
    return [
        {"role": "system", "content": build_system_prompt(target_lang, source_lang, context)},
        {"role": "user", "content": build_user_prompt(text)},
    ]

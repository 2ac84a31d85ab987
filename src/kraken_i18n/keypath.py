"""
Keypath - преобразование вложенных JSON-деревьев в плоские ключи и обратно.

Ключ перевода это путь через точку: {"app": {"title": "X"}} <-> {"app.title": "X"}.
Переводимыми считаются только строковые листья, массивы и прочие типы
при чтении отбрасываются.
"""

from typing import Any, Dict, Optional


def flatten(tree: Any, prefix: str = "", out: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Разворачивает дерево в словарь {путь: строка}.

    Args:
        tree: Корневой объект (обычно dict из JSON)
        prefix: Префикс пути для рекурсии
        out: Накопитель результата

    Returns:
        Dict[путь через точку, строковое значение]
    """
    if out is None:
        out = {}
    if not isinstance(tree, dict):
        return out

    for key, entry in tree.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if isinstance(entry, str):
            out[full_key] = entry
        elif isinstance(entry, dict):
            flatten(entry, full_key, out)
        # списки, числа, bool и null не переводятся
    return out


def set_value(tree: Dict[str, Any], path: str, value: str) -> None:
    """
    Записывает значение по пути, создавая промежуточные узлы.

    Любой промежуточный узел, который не является объектом (строка, список,
    число), заменяется новым пустым объектом.
    """
    parts = path.split(".")
    current = tree
    for part in parts[:-1]:
        node = current.get(part)
        if not isinstance(node, dict):
            node = {}
            current[part] = node
        current = node
    current[parts[-1]] = value


def get_value(tree: Any, path: str) -> Optional[Any]:
    """Читает значение по пути. None, если путь прерывается."""
    current = tree
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def has_path(tree: Any, path: str) -> bool:
    """Есть ли значение по пути. Лист null тоже считается значением."""
    current = tree
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return False
        current = current[part]
    return True


def unflatten(flat: Dict[str, str]) -> Dict[str, Any]:
    """Собирает вложенное дерево из плоского словаря."""
    tree: Dict[str, Any] = {}
    for path, value in flat.items():
        set_value(tree, path, value)
    return tree

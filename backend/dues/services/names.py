def normalize_name(name: str) -> str:
    """Comparison-safe form of a person's name.

    Whitespace and digits are dropped (depositors often append a cohort
    suffix such as ``Kim Minjun23``), then anything that is not a letter in
    some script is removed and the result lowercased.

    >>> normalize_name(" Kim Minjun23 ")
    'kimminjun'
    >>> normalize_name("서동윤 (23)")
    '서동윤'
    """
    if not name:
        return ""
    without_space = "".join(name.split())
    without_digits = "".join(ch for ch in without_space if not ch.isdigit())
    letters_only = "".join(ch for ch in without_digits if ch.isalpha())
    return letters_only.lower()

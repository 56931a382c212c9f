from typing import List

def chunk_text(text: str, chunk_size: int = 1000) -> List[str]:
    """Split text into consecutive fixed-size windows without overlap.

    The last window may be shorter. Joining the result gives back ``text``
    exactly; empty text gives no chunks.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]

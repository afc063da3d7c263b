from .wiki_markup import extract_infobox

__all__ = ["extract_infobox"]

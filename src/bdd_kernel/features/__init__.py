from .cache import FeatureCache
from .parser import FeatureDocument, GherkinParser, document_from_ast

__all__ = ["FeatureCache", "FeatureDocument", "GherkinParser", "document_from_ast"]

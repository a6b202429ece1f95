from sqlalchemy import false, or_
from sqlalchemy.orm import Query

from api_catalog.models.api import SEARCH_FIELDS, Api, tokenize


class ApiSearchIndex:
    """Whole-token search over the indexed ``Api`` columns.

    A row matches when any query token equals a token of any indexed column,
    case-insensitively. Terms come from ``Api.search_text``, which is rebuilt
    on every insert and update.
    """

    def __init__(self, fields: tuple[str, ...] = SEARCH_FIELDS) -> None:
        self.fields = fields

    @staticmethod
    def tokenize(text: str) -> list[str]:
        return tokenize(text)

    def clause(self, text: str):
        tokens = self.tokenize(text)
        if not tokens:
            return false()

        terms = [f' {field}:{token} ' for token in tokens for field in self.fields]
        return or_(*(Api.search_text.contains(term, autoescape=True) for term in terms))

    def apply(self, query: Query, text: str) -> Query:
        return query.filter(self.clause(text))


default_index = ApiSearchIndex()

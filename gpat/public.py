"""
Public read-only subset.

No identity involved: only records that are publicly accessible (public_api
on, clean state, publishable type, official for measures) ever leave here.
Each listing has a matching last_updated() so callers can build cache keys
and ETags from (max updated_at, count).
"""

import logging

from gpat.integrity.state import StateInvariantValidator
from gpat.models import JoinKind, Kind
from gpat.store import RecordStore
from gpat.type_registry import TypeRegistry, get_type_registry

logger = logging.getLogger(__name__)

# measure_indicators.supportlevel_id -> published position
SUPPORT_POSITIONS = {
    1: 3,  # strong: called for
    2: 2,  # quite positive: supported
    3: 0,  # on the fence
    4: -1,  # sceptical
    5: -1,  # opponent
    99: 0,  # no statement
}


def support_position(supportlevel_id: int | None) -> int:
    return SUPPORT_POSITIONS.get(supportlevel_id, 0)


def _by_code(record: dict):
    return (record.get("code") or "", record["id"])


class PublicRegistry:
    def __init__(self, store: RecordStore, types: TypeRegistry | None = None):
        self.store = store
        self.types = types or get_type_registry()
        self.state = StateInvariantValidator(self.types)

    def _public(self, kind: Kind) -> list[dict]:
        records = [r for r in self.store.all(kind) if self.state.publicly_accessible(kind, r)]
        return sorted(records, key=_by_code)

    def public_countries(self) -> list[dict]:
        return [
            {"gpat_id": r["id"], "code": r["code"], "name": r["title"], "updated_at": r["updated_at"]}
            for r in self._public(Kind.ACTOR)
        ]

    def public_topics(self) -> list[dict]:
        return [
            {
                "gpat_id": r["id"],
                "code": r["code"],
                "title": r["title"],
                "description": r["description"],
                "teaser": r["teaser_api"],
                "annotation": r["annotation_api"],
                "short_title": r["short_api"],
                "updated_at": r["updated_at"],
            }
            for r in self._public(Kind.INDICATOR)
        ]

    def public_statements(self) -> list[dict]:
        """Statements with one position_t<id> entry per public topic (None when unset)."""
        topic_ids = [r["id"] for r in self._public(Kind.INDICATOR)]
        results = []
        for measure in self._public(Kind.MEASURE):
            result = {
                "gpat_id": measure["id"],
                "title": measure["title"],
                "date": measure["date_start"],
                "url": measure["url"],
                "quote_api": measure["quote_api"],
                "source_api": measure["source_api"],
                "updated_at": measure["updated_at"],
            }
            for topic_id in topic_ids:
                result[f"position_t{topic_id}"] = None
            for link in self.store.links(JoinKind.MEASURE_INDICATOR, measure_id=measure["id"]):
                if link["indicator_id"] in topic_ids:
                    result[f"position_t{link['indicator_id']}"] = support_position(link["supportlevel_id"])
            results.append(result)
        return results

    def country_statements(self) -> list[dict]:
        """
        Country/statement pairs, direct or through a group the country belongs to.

        A pair reachable both ways is reported once, as direct. Sorted by the
        statement's date_start.
        """
        countries = {r["id"]: r for r in self._public(Kind.ACTOR)}
        statements = {r["id"]: r for r in self._public(Kind.MEASURE)}
        group_type_ids = set(self.types.ids_where(Kind.ACTOR, "has_members"))

        results = []
        direct_pairs = set()
        indirect = []
        for link in self.store.links(JoinKind.ACTOR_MEASURE):
            statement = statements.get(link["measure_id"])
            if statement is None:
                continue
            country = countries.get(link["actor_id"])
            if country is not None:
                direct_pairs.add((country["id"], statement["id"]))
                results.append(_pair(country, statement))
                continue

            group = self.store.get(Kind.ACTOR, link["actor_id"])
            if not _open_group(group, group_type_ids):
                continue
            for membership in self.store.links(JoinKind.MEMBERSHIP, memberof_id=group["id"]):
                member = countries.get(membership["member_id"])
                if member is not None:
                    indirect.append((member, statement, group))

        seen = set(direct_pairs)
        for country, statement, group in indirect:
            pair = (country["id"], statement["id"])
            if pair in seen:
                continue
            seen.add(pair)
            results.append({**_pair(country, statement), "via_group_id": group["id"], "via_group_code": group["code"]})

        results.sort(key=lambda r: r["date_start"] or "")
        return results

    def last_updated(self, kind: Kind) -> tuple[str | None, int]:
        """(max updated_at, count) over the public records of one kind."""
        ids = [r["id"] for r in self._public(kind)]
        return self.store.last_updated(kind, ids)


def _pair(country: dict, statement: dict) -> dict:
    return {
        "country_id": country["id"],
        "country_code": country["code"],
        "statement_id": statement["id"],
        "statement_code": statement["code"],
        "date_start": statement["date_start"],
    }


def _open_group(actor: dict | None, group_type_ids: set[int]) -> bool:
    if actor is None or actor["actortype_id"] not in group_type_ids:
        return False
    return not (actor["is_archive"] or actor["private"] or actor["draft"])

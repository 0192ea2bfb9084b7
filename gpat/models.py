"""
Record kinds, join kinds and their column layout.

Records travel through the core as plain dicts (rows from the store);
this module is the single place that knows which table, type-tag column
and flag columns belong to each kind.
"""

from dataclasses import dataclass
from enum import StrEnum


class Kind(StrEnum):
    ACTOR = "actor"
    MEASURE = "measure"
    INDICATOR = "indicator"
    USER = "user"
    CATEGORY = "category"
    RESOURCE = "resource"


class JoinKind(StrEnum):
    ACTOR_MEASURE = "actor_measure"
    MEASURE_ACTOR = "measure_actor"
    MEASURE_CATEGORY = "measure_category"
    MEASURE_INDICATOR = "measure_indicator"
    MEASURE_RESOURCE = "measure_resource"
    USER_MEASURE = "user_measure"
    MEMBERSHIP = "membership"


class Action(StrEnum):
    INDEX = "index"
    SHOW = "show"
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


READ_ACTIONS = frozenset({Action.INDEX, Action.SHOW})
WRITE_ACTIONS = frozenset({Action.CREATE, Action.UPDATE, Action.DESTROY})

TABLES = {
    Kind.ACTOR: "actors",
    Kind.MEASURE: "measures",
    Kind.INDICATOR: "indicators",
    Kind.USER: "users",
    Kind.CATEGORY: "categories",
    Kind.RESOURCE: "resources",
}

# Records mutated through the service (policies, validators, hierarchy)
MANAGED_KINDS = (Kind.ACTOR, Kind.MEASURE, Kind.INDICATOR)

# Records carrying relationship_updated_at / relationship_updated_by_id
TOUCHABLE_KINDS = frozenset({Kind.ACTOR, Kind.MEASURE, Kind.INDICATOR, Kind.USER})

TYPE_FIELDS = {
    Kind.ACTOR: "actortype_id",
    Kind.MEASURE: "measuretype_id",
}

FLAG_FIELDS = ("draft", "private", "is_archive", "public_api")

# Columns the store maintains itself; never taken from a payload
SYSTEM_FIELDS = frozenset(
    {
        "id",
        "created_at",
        "updated_at",
        "created_by_id",
        "updated_by_id",
        "relationship_updated_at",
        "relationship_updated_by_id",
    }
)

# Everything persisted except this counts as a notifiable change
NON_NOTIFIABLE_FIELDS = frozenset({"updated_at"})

INDICATOR_SCHEDULE_FIELDS = ("start_date", "end_date", "repeat", "frequency_months")


@dataclass(frozen=True)
class JoinSide:
    column: str
    kind: Kind


@dataclass(frozen=True)
class JoinSpec:
    """Layout of one join table."""

    kind: JoinKind
    table: str
    left: JoinSide
    right: JoinSide
    fields: tuple[str, ...] = ()
    updatable: bool = True

    @property
    def sides(self) -> tuple[JoinSide, JoinSide]:
        return (self.left, self.right)

    @property
    def columns(self) -> tuple[str, ...]:
        return (self.left.column, self.right.column, *self.fields)

    def side_for(self, kind: Kind) -> JoinSide | None:
        for side in self.sides:
            if side.kind == kind:
                return side
        return None


JOINS: dict[JoinKind, JoinSpec] = {
    JoinKind.ACTOR_MEASURE: JoinSpec(
        JoinKind.ACTOR_MEASURE,
        "actor_measures",
        JoinSide("actor_id", Kind.ACTOR),
        JoinSide("measure_id", Kind.MEASURE),
        fields=("date_start", "date_end", "value"),
    ),
    JoinKind.MEASURE_ACTOR: JoinSpec(
        JoinKind.MEASURE_ACTOR,
        "measure_actors",
        JoinSide("measure_id", Kind.MEASURE),
        JoinSide("actor_id", Kind.ACTOR),
        fields=("date_start", "date_end", "value"),
    ),
    JoinKind.MEASURE_CATEGORY: JoinSpec(
        JoinKind.MEASURE_CATEGORY,
        "measure_categories",
        JoinSide("measure_id", Kind.MEASURE),
        JoinSide("category_id", Kind.CATEGORY),
        updatable=False,
    ),
    JoinKind.MEASURE_INDICATOR: JoinSpec(
        JoinKind.MEASURE_INDICATOR,
        "measure_indicators",
        JoinSide("measure_id", Kind.MEASURE),
        JoinSide("indicator_id", Kind.INDICATOR),
        fields=("supportlevel_id",),
    ),
    JoinKind.MEASURE_RESOURCE: JoinSpec(
        JoinKind.MEASURE_RESOURCE,
        "measure_resources",
        JoinSide("measure_id", Kind.MEASURE),
        JoinSide("resource_id", Kind.RESOURCE),
        updatable=False,
    ),
    JoinKind.USER_MEASURE: JoinSpec(
        JoinKind.USER_MEASURE,
        "user_measures",
        JoinSide("user_id", Kind.USER),
        JoinSide("measure_id", Kind.MEASURE),
        updatable=False,
    ),
    JoinKind.MEMBERSHIP: JoinSpec(
        JoinKind.MEMBERSHIP,
        "memberships",
        JoinSide("member_id", Kind.ACTOR),
        JoinSide("memberof_id", Kind.ACTOR),
        updatable=False,
    ),
}


def type_field(kind: Kind) -> str | None:
    return TYPE_FIELDS.get(kind)

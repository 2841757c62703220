# contributions.py
"""
Write paths for contributors and admins.

The signed-in user is passed in explicitly as an Identity built at the request
boundary; nothing here looks up a "current user". Authorization is checked
before the store is touched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from acrostic import (
    LEVELS,
    PARENT_LEVEL,
    ValidationResult,
    letter_constraint_for,
    parse_reference,
    validate_acrostic,
)
from branch_store import (
    STATUSES,
    Branch,
    branch_scores,
    get_branch,
    insert_branch,
    is_admin,
    set_canonical,
    toggle_vote,
    update_branch,
)
from errors import AuthorizationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: Optional[str]

    @property
    def authenticated(self) -> bool:
        return bool(self.user_id)


@dataclass
class ContributionResult:
    validation: ValidationResult
    branch: Optional[Branch] = None

    @property
    def ok(self) -> bool:
        return self.validation.valid and self.branch is not None


@dataclass(frozen=True)
class VoteOutcome:
    branch_id: str
    user_vote: Optional[int]
    score: int


def _require_user(identity: Optional[Identity]) -> str:
    if identity is None or not identity.authenticated:
        raise AuthorizationError('You must be logged in to contribute.')
    return identity.user_id


def _require_admin(identity: Optional[Identity], engine: Optional[Engine]) -> str:
    user_id = _require_user(identity)
    if not is_admin(user_id, engine=engine):
        raise AuthorizationError('Administrator rights are required.')
    return user_id


def create_branch(
    identity: Identity,
    level: str,
    reference: str,
    content: str,
    parent_branch_id: Optional[str] = None,
    letter_constraint: Optional[str] = None,
    engine: Optional[Engine] = None,
) -> ContributionResult:
    """
    Validate and store a new contribution. Used for fresh branches and for
    quick-edit alternatives alike.

    When a parent branch is given without an explicit letter constraint, the
    constraint is taken from the parent's acrostic at this unit's position.
    """
    user_id = _require_user(identity)

    if level not in LEVELS:
        return ContributionResult(ValidationResult(False, f'Unknown level "{level}"'))
    ref = parse_reference(reference, level)
    if ref is None:
        return ContributionResult(ValidationResult(False, f'Invalid {level} reference "{reference}"'))

    if parent_branch_id:
        parent = get_branch(parent_branch_id, engine=engine)
        if (
            parent is None
            or parent.level != PARENT_LEVEL.get(level)
            or parent.reference != str(ref.parent)
        ):
            return ContributionResult(ValidationResult(False, 'Parent branch not found'))
        if letter_constraint is None:
            letter_constraint = letter_constraint_for(ref, parent.content)

    validation = validate_acrostic(content, level, reference, letter_constraint)
    if not validation.valid:
        return ContributionResult(validation)

    branch = insert_branch(
        level,
        reference,
        content.strip(),
        parent_branch_id=parent_branch_id,
        letter_constraint=letter_constraint,
        is_canonical=False,
        created_by=user_id,
        engine=engine,
    )
    logger.info('User %s created %s branch %s for %s', user_id, level, branch.id, reference)
    return ContributionResult(validation, branch)


def cast_vote(identity: Identity, branch_id: str, value: int, engine: Optional[Engine] = None) -> VoteOutcome:
    """
    Up/down vote click. Clicking the same direction twice retracts the vote.
    The returned score is recomputed from the stored votes so callers can
    reconcile any optimistic count they displayed.
    """
    user_id = _require_user(identity)
    user_vote = toggle_vote(user_id, branch_id, value, engine=engine)
    total = branch_scores([branch_id], engine=engine)[branch_id]
    return VoteOutcome(branch_id, user_vote, total)


def mark_canonical(identity: Identity, branch_id: str, canonical: bool = True, engine: Optional[Engine] = None) -> Branch:
    user_id = _require_admin(identity, engine)
    branch = set_canonical(branch_id, canonical, engine=engine)
    logger.info('Admin %s set canonical=%s on %s (%s)', user_id, canonical, branch_id, branch.reference)
    return branch


def set_status(identity: Identity, branch_id: str, status: str, engine: Optional[Engine] = None) -> Branch:
    user_id = _require_admin(identity, engine)
    if status not in STATUSES:
        raise ValueError(f'Invalid branch status: {status!r}')
    branch = update_branch(branch_id, engine=engine, status=status)
    logger.info('Admin %s set status=%s on %s', user_id, status, branch_id)
    return branch

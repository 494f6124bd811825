"""
services/budget_service.py — Budget and expense business logic.

Every public function here is one API operation. Each one:
  1. loads the aggregate (budget, and the expense or trip where relevant),
  2. checks access (services/access_control.py) and input
     (utils/validation.py),
  3. runs the split engine where money is divided,
  4. mutates ORM objects and flushes,
  5. re-syncs the trip's cached summary when totals may have moved,
  6. returns a freshly built snapshot (services/snapshot.py).

Permission summary:
  create budget / update base budget / retire member   trip creator only
  update contribution    trip creator for anyone; a member for themself while
                         allow_member_contribution_edits and still active
  create expense         active member; non-creators need
                         allow_member_expense_creation
  update / delete        active member; non-creators only their own expense,
                         and only while allow_member_expense_edits
  read snapshot          trip creator, trip member, or budget member (past
                         members included)
  clone                  creator of the target trip who can read the source

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives plain ints and dicts (already shaped by the schemas).
  - Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tripbudget.app.errors import (
    BusinessRuleViolation,
    Conflict,
    ErrorCode,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from tripbudget.app.models.budget import Budget, BudgetMember, CloneMode, MemberRole
from tripbudget.app.models.expense import Expense, SplitMethod
from tripbudget.app.models.guards import ensure_single_creator
from tripbudget.app.models.split import ExpenseSplit
from tripbudget.app.services import split_engine
from tripbudget.app.services.access_control import (
    ExpenseAction,
    enforce_expense_permission,
    ensure_active_member,
    ensure_member_access,
    find_member,
    get_budget_member_ids,
    is_budget_creator,
)
from tripbudget.app.services.snapshot import build_snapshot
from tripbudget.app.services.summary_sync import sync_trip_budget_summary
from tripbudget.app.services.trip_service import (
    get_trip_or_404,
    is_trip_creator,
    is_trip_member,
    trip_member_ids,
)
from tripbudget.app.utils.money import from_cents, to_cents
from tripbudget.app.utils.validation import (
    is_valid_id,
    parse_iso_date,
    validate_amount,
    validate_clone_mode,
    validate_contribution,
    validate_currency,
    validate_id,
    validate_split_method,
)

logger = logging.getLogger(__name__)

RULE_FIELDS = (
    "allow_member_contribution_edits",
    "allow_member_expense_creation",
    "allow_member_expense_edits",
)

# snake_case key → wire name reported in the error
IMMUTABLE_EXPENSE_FIELDS = {
    "split_method": "splitMethod",
    "created_by":   "createdBy",
    "paid_by":      "paidBy",
    "trip_id":      "tripId",
}


# ── Private helpers ────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _find_budget_by_trip(trip_id: int, session: Session) -> Budget | None:
    return session.execute(
        select(Budget).where(Budget.trip_id == trip_id)
    ).scalar_one_or_none()


def _get_budget_by_trip_or_404(trip_id: int, session: Session) -> Budget:
    """Returns the trip's Budget or raises BUDGET_NOT_FOUND (404)."""
    budget = _find_budget_by_trip(trip_id, session)
    if budget is None:
        raise NotFound(
            ErrorCode.BUDGET_NOT_FOUND,
            f"Trip {trip_id} has no budget.",
        )
    return budget


def _get_expense_or_404(expense_id: int, session: Session) -> Expense:
    """Returns the Expense or raises EXPENSE_NOT_FOUND (404)."""
    expense = session.get(Expense, expense_id)
    if expense is None:
        raise NotFound(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
        )
    return expense


def _require_trip_creator(trip, user_id: int, action: str) -> None:
    if not is_trip_creator(trip, user_id):
        raise PermissionDenied(
            ErrorCode.NOT_TRIP_CREATOR,
            f"Only the trip creator can {action}.",
        )


def _list_trip_expenses(trip_id: int, session: Session) -> list[Expense]:
    """All expenses for a trip, newest first."""
    stmt = (
        select(Expense)
        .where(Expense.trip_id == trip_id)
        .order_by(Expense.date.desc(), Expense.created_at.desc(), Expense.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


def _member_spent_cents(trip_id: int, user_id: int, session: Session) -> int:
    """Sum of every split assigned to user_id across the trip's expenses."""
    stmt = (
        select(func.coalesce(func.sum(ExpenseSplit.amount_cents), 0))
        .join(Expense, Expense.id == ExpenseSplit.expense_id)
        .where(Expense.trip_id == trip_id, ExpenseSplit.user_id == user_id)
    )
    return int(session.execute(stmt).scalar_one())


def _snapshot(budget: Budget, session: Session) -> dict:
    return build_snapshot(budget, _list_trip_expenses(budget.trip_id, session))


def _apply_rules(budget: Budget, rules: dict | None) -> None:
    """Copies whichever rule flags are present; absent flags are left alone."""
    if not rules:
        return
    for name in RULE_FIELDS:
        if name in rules and rules[name] is not None:
            setattr(budget, name, bool(rules[name]))


def _reject_past_member_splits(budget: Budget, splits: list[dict] | None) -> None:
    """Caller-supplied splits may only name members who are still active."""
    for split in splits or []:
        member = find_member(budget, split.get("user_id"))
        if member is not None and member.is_past_member:
            raise ValidationFailed(
                ErrorCode.SPLIT_USER_PAST_MEMBER,
                f"User {member.user_id} is a past member and cannot be assigned "
                f"new splits.",
                field="splits",
            )


def _stored_split_input(expense: Expense) -> list[dict]:
    """Existing splits in the shape compute_splits() accepts as caller input."""
    return [
        {
            "user_id":    s.user_id,
            "amount":     from_cents(s.amount_cents),
            "percentage": s.percentage,
        }
        for s in expense.splits
    ]


def _compute_validated_splits(
        budget: Budget,
        amount_cents: int,
        split_method: SplitMethod,
        splits_input: list[dict] | None,
) -> list[dict]:
    computed = split_engine.compute_splits(
        amount_cents, split_method, splits_input, budget.members,
    )
    split_engine.validate_splits(computed, amount_cents, get_budget_member_ids(budget))
    return computed


def _replace_splits(expense: Expense, computed: list[dict]) -> None:
    """
    Swaps the expense's splits for the computed ones.

    Rows for users that stay on the expense are updated in place; only users
    that drop off are deleted. Deleting and re-inserting the same user would
    trip UNIQUE(expense_id, user_id), because the unit of work inserts before
    it deletes.
    """
    existing = {s.user_id: s for s in expense.splits}
    replacement = []
    for row in computed:
        split = existing.get(row["user_id"]) or ExpenseSplit(user_id=row["user_id"])
        split.amount_cents = row["amount_cents"]
        split.percentage = row.get("percentage")
        replacement.append(split)
    expense.splits = replacement
    # Kept rows carry their old position; renumber in computed order.
    expense.splits.reorder()


# ── Budget operations ──────────────────────────────────────────────────────

def create_budget(
        trip_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> dict:
    """
    Creates the budget for a trip.

    Contributions come from exactly one of:
      total_budget_amount  divided equally over the trip roster (creator
                           appended when the roster omits them), remainder to
                           the last person; also stored as base_budget_amount.
      members              explicit [{user_id, planned_contribution}].
    Neither → every member starts at 0.

    Every trip member becomes a budget member. The trip creator is the budget
    creator; everyone else gets role 'member'.

    Raises:
        NotFound(TRIP_NOT_FOUND)                    — trip does not exist.
        PermissionDenied(NOT_TRIP_CREATOR)          — caller is not the trip creator.
        Conflict(BUDGET_EXISTS)                     — trip already has a budget.
        ValidationFailed(CONFLICTING_BUDGET_INPUT)  — both inputs supplied.
        ValidationFailed(BUDGET_MEMBER_NOT_IN_TRIP) — contributor not on the trip.
    """
    validate_id(trip_id, "tripId")
    trip = get_trip_or_404(trip_id, session)
    _require_trip_creator(trip, caller_id, "create a budget")

    if _find_budget_by_trip(trip_id, session) is not None:
        raise Conflict(
            ErrorCode.BUDGET_EXISTS,
            f"Trip {trip_id} already has a budget.",
        )

    base_currency = validate_currency(data.get("base_currency"))

    total = data.get("total_budget_amount")
    members_input = data.get("members")
    if total is not None and members_input is not None:
        raise ValidationFailed(
            ErrorCode.CONFLICTING_BUDGET_INPUT,
            "Send either totalBudgetAmount or members, not both.",
        )

    roster = trip_member_ids(trip)
    if trip.created_by not in roster:
        roster.append(trip.created_by)

    contributions: dict[int, int] = {}
    base_budget_cents = None
    if total is not None:
        base_budget_cents = to_cents(validate_amount(total, "totalBudgetAmount"))
        for row in split_engine.divide_equally(base_budget_cents, roster):
            contributions[row["user_id"]] = row["amount_cents"]
    elif members_input is not None:
        for entry in members_input:
            user_id = validate_id(entry.get("user_id"), "members.userId")
            contributions[user_id] = to_cents(
                validate_contribution(entry.get("planned_contribution"))
            )

    for user_id in contributions:
        if user_id not in roster:
            raise ValidationFailed(
                ErrorCode.BUDGET_MEMBER_NOT_IN_TRIP,
                f"User {user_id} is not a member of trip {trip_id}.",
                field="members",
            )

    members: list[BudgetMember] = []
    seen: set[int] = set()
    for trip_member in trip.members:
        if trip_member.user_id in seen:
            continue
        seen.add(trip_member.user_id)
        members.append(BudgetMember(
            user_id=trip_member.user_id,
            planned_contribution_cents=contributions.get(trip_member.user_id, 0),
            role=(
                MemberRole.CREATOR
                if trip_member.user_id == trip.created_by
                else MemberRole.MEMBER
            ),
            joined_at=trip_member.joined_at or _utcnow(),
            is_past_member=False,
        ))

    if trip.created_by not in seen:
        members.insert(0, BudgetMember(
            user_id=trip.created_by,
            planned_contribution_cents=contributions.get(trip.created_by, 0),
            role=MemberRole.CREATOR,
            joined_at=trip.created_at or _utcnow(),
            is_past_member=False,
        ))

    budget = Budget(
        trip_id=trip_id,
        base_currency=base_currency,
        base_budget_cents=base_budget_cents,
        created_by=caller_id,
        allow_member_contribution_edits=True,
        allow_member_expense_creation=True,
        allow_member_expense_edits=True,
    )
    _apply_rules(budget, data.get("rules"))
    budget.members = members

    session.add(budget)
    sync_trip_budget_summary(trip_id, session)

    logger.info(
        "Budget created for trip %s by user %s (%s, %d members)",
        trip_id, caller_id, base_currency, len(members),
    )
    return _snapshot(budget, session)


def update_base_budget(
        trip_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> dict:
    """
    Sets or clears (None) the budget's base amount, and optionally updates
    any of the permission rules. Trip creator only.
    """
    validate_id(trip_id, "tripId")
    trip = get_trip_or_404(trip_id, session)
    _require_trip_creator(trip, caller_id, "update the base budget")
    budget = _get_budget_by_trip_or_404(trip_id, session)

    if "base_budget_amount" in data:
        raw = data["base_budget_amount"]
        budget.base_budget_cents = (
            None if raw is None
            else to_cents(validate_amount(raw, "baseBudgetAmount"))
        )

    _apply_rules(budget, data.get("rules"))
    session.flush()

    logger.info("Budget for trip %s updated by user %s", trip_id, caller_id)
    return _snapshot(budget, session)


def update_member_contribution(
        trip_id: int,
        target_user_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> dict:
    """
    Changes one member's planned contribution.

    The creator may change anyone's. A member may change only their own,
    only while allow_member_contribution_edits is on, and only while active.
    Nobody may plan less than the member has already been assigned in splits.

    Raises:
        PermissionDenied(FORBIDDEN)                     — caller not on the trip,
                                                          or editing someone else.
        PermissionDenied(MEMBER_RULE_DISABLED)          — rule switched off.
        PermissionDenied(PAST_MEMBER_READ_ONLY)         — caller retired.
        NotFound(BUDGET_MEMBER_NOT_FOUND)               — target not in budget.
        BusinessRuleViolation(CONTRIBUTION_BELOW_SPENT) — below spent total.
    """
    validate_id(trip_id, "tripId")
    validate_id(target_user_id, "userId")
    trip = get_trip_or_404(trip_id, session)

    if not is_trip_member(trip, caller_id):
        raise PermissionDenied(
            ErrorCode.FORBIDDEN,
            "You are not a member of this trip.",
        )

    budget = _get_budget_by_trip_or_404(trip_id, session)
    planned_cents = to_cents(validate_contribution(data.get("planned_contribution")))

    if not is_trip_creator(trip, caller_id):
        if caller_id != target_user_id:
            raise PermissionDenied(
                ErrorCode.FORBIDDEN,
                "Only the trip creator can update other members' contributions.",
            )
        if not budget.allow_member_contribution_edits:
            raise PermissionDenied(
                ErrorCode.MEMBER_RULE_DISABLED,
                "Member contribution edits are disabled for this budget.",
            )
        ensure_active_member(budget, caller_id)

    member = find_member(budget, target_user_id)
    if member is None:
        raise NotFound(
            ErrorCode.BUDGET_MEMBER_NOT_FOUND,
            f"User {target_user_id} is not a member of this budget.",
        )

    spent_cents = _member_spent_cents(trip_id, target_user_id, session)
    if planned_cents < spent_cents:
        raise BusinessRuleViolation(
            ErrorCode.CONTRIBUTION_BELOW_SPENT,
            f"Planned contribution cannot be less than the {from_cents(spent_cents)} "
            f"already spent.",
            field="plannedContribution",
        )

    member.planned_contribution_cents = planned_cents
    sync_trip_budget_summary(trip_id, session)

    logger.info(
        "Contribution for user %s on trip %s set to %s cents by user %s",
        target_user_id, trip_id, planned_cents, caller_id,
    )
    return _snapshot(budget, session)


def retire_budget_member(
        trip_id: int,
        target_user_id: int,
        caller_id: int,
        session: Session,
) -> dict:
    """
    Marks a budget member as past. They keep read access and their history,
    but no longer take part in equal splits and can no longer mutate.
    Idempotent. The creator cannot be retired.
    """
    validate_id(trip_id, "tripId")
    validate_id(target_user_id, "userId")
    trip = get_trip_or_404(trip_id, session)
    _require_trip_creator(trip, caller_id, "retire budget members")
    budget = _get_budget_by_trip_or_404(trip_id, session)

    member = find_member(budget, target_user_id)
    if member is None:
        raise NotFound(
            ErrorCode.BUDGET_MEMBER_NOT_FOUND,
            f"User {target_user_id} is not a member of this budget.",
        )
    if member.role == MemberRole.CREATOR:
        raise BusinessRuleViolation(
            ErrorCode.CANNOT_RETIRE_CREATOR,
            "The budget creator cannot be made a past member.",
        )

    member.is_past_member = True
    session.flush()

    logger.info(
        "User %s retired from budget on trip %s by user %s",
        target_user_id, trip_id, caller_id,
    )
    return _snapshot(budget, session)


def get_budget_snapshot(trip_id: int, caller_id: int, session: Session) -> dict:
    """
    Returns the current snapshot. Readable by the trip creator, any trip
    member, and any budget member (past members included).
    """
    validate_id(trip_id, "tripId")
    trip = get_trip_or_404(trip_id, session)
    budget = _find_budget_by_trip(trip_id, session)

    can_read = is_trip_member(trip, caller_id) or (
        budget is not None and find_member(budget, caller_id) is not None
    )
    if not can_read:
        raise PermissionDenied(
            ErrorCode.FORBIDDEN,
            "You are not allowed to view this budget.",
        )
    if budget is None:
        raise NotFound(
            ErrorCode.BUDGET_NOT_FOUND,
            f"Trip {trip_id} has no budget.",
        )

    return _snapshot(budget, session)


def clone_budget(
        original_trip_id: int,
        new_trip_id: int,
        cloning_user_id: int,
        mode: CloneMode | str | None,
        session: Session,
) -> dict:
    """
    Copies a budget's structure into another trip.

    Modes:
      TEMPLATE      members + rules; every planned contribution reset to 0.
      PLANNING      members + rules + planned contributions. Default.
      FULL_HISTORY  PLANNING, plus a copy of every expense (fresh ids,
                    same payer, creator, splits and dates).

    The cloning user becomes the sole creator; everyone else is a member and
    every member starts active. The base budget amount is not carried over.

    Raises:
        NotFound(TRIP_NOT_FOUND / BUDGET_NOT_FOUND) — either trip or the source
                                                      budget is missing.
        PermissionDenied(NOT_TRIP_CREATOR)          — cloner does not own the new trip.
        PermissionDenied(NOT_BUDGET_MEMBER)         — cloner cannot read the source.
        Conflict(BUDGET_EXISTS)                     — new trip already has a budget.
        Conflict(CREATOR_INVARIANT)                 — result lacks exactly one creator.
    """
    validate_id(original_trip_id, "sourceTripId")
    validate_id(new_trip_id, "tripId")
    validate_id(cloning_user_id, "userId")
    clone_mode = validate_clone_mode(mode)

    new_trip = get_trip_or_404(new_trip_id, session)
    _require_trip_creator(new_trip, cloning_user_id, "clone a budget into this trip")

    source = _get_budget_by_trip_or_404(original_trip_id, session)
    ensure_member_access(source, cloning_user_id)

    if _find_budget_by_trip(new_trip_id, session) is not None:
        raise Conflict(
            ErrorCode.BUDGET_EXISTS,
            f"Trip {new_trip_id} already has a budget.",
        )

    now = _utcnow()
    members = [
        BudgetMember(
            user_id=m.user_id,
            planned_contribution_cents=(
                0 if clone_mode == CloneMode.TEMPLATE else m.planned_contribution_cents
            ),
            role=(
                MemberRole.CREATOR
                if m.user_id == cloning_user_id
                else MemberRole.MEMBER
            ),
            joined_at=now,
            is_past_member=False,
        )
        for m in source.members
    ]
    ensure_single_creator(members)

    source_expenses = (
        _list_trip_expenses(original_trip_id, session)
        if clone_mode == CloneMode.FULL_HISTORY
        else []
    )

    budget = Budget(
        trip_id=new_trip_id,
        base_currency=source.base_currency,
        base_budget_cents=None,
        created_by=cloning_user_id,
        allow_member_contribution_edits=source.allow_member_contribution_edits,
        allow_member_expense_creation=source.allow_member_expense_creation,
        allow_member_expense_edits=source.allow_member_expense_edits,
    )
    budget.members = members
    session.add(budget)

    for original in source_expenses:
        session.add(Expense(
            trip_id=new_trip_id,
            title=original.title,
            amount_cents=original.amount_cents,
            currency=original.currency,
            category=original.category,
            paid_by=original.paid_by,
            created_by=original.created_by,
            split_method=original.split_method,
            date=original.date,
            notes=original.notes,
            splits=[
                ExpenseSplit(
                    user_id=s.user_id,
                    amount_cents=s.amount_cents,
                    percentage=s.percentage,
                )
                for s in original.splits
            ],
        ))

    sync_trip_budget_summary(new_trip_id, session)

    logger.info(
        "Budget cloned from trip %s to trip %s by user %s (mode=%s, %d expenses)",
        original_trip_id, new_trip_id, cloning_user_id,
        clone_mode.value, len(source_expenses),
    )
    return _snapshot(budget, session)


# ── Expense operations ─────────────────────────────────────────────────────

def create_expense(
        trip_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> dict:
    """
    Records an expense against the trip's budget.

    The expense is stored in the budget's base currency. A `currency` in the
    request is accepted only when it matches.

    Raises:
        NotFound(BUDGET_NOT_FOUND)
        PermissionDenied(NOT_BUDGET_MEMBER / PAST_MEMBER_READ_ONLY /
                         MEMBER_RULE_DISABLED)
        ValidationFailed(PAYER_NOT_MEMBER / CURRENCY_MISMATCH /
                         SPLIT_USER_PAST_MEMBER / any split engine code)
    """
    validate_id(trip_id, "tripId")
    budget = _get_budget_by_trip_or_404(trip_id, session)

    ensure_member_access(budget, caller_id)
    ensure_active_member(budget, caller_id)
    enforce_expense_permission(
        ExpenseAction.CREATE,
        is_budget_creator(budget, caller_id),
        caller_id,
        None,
        budget,
    )

    paid_by = data.get("paid_by")
    if not is_valid_id(paid_by):
        raise ValidationFailed(
            ErrorCode.INVALID_ID,
            "paidBy must be a valid user id.",
            field="paidBy",
        )
    if paid_by not in get_budget_member_ids(budget):
        raise ValidationFailed(
            ErrorCode.PAYER_NOT_MEMBER,
            f"User {paid_by} is not a member of this budget.",
            field="paidBy",
        )

    amount_cents = to_cents(validate_amount(data.get("amount")))

    if data.get("currency") is not None:
        currency = validate_currency(data["currency"], "currency")
        if currency != budget.base_currency:
            raise ValidationFailed(
                ErrorCode.CURRENCY_MISMATCH,
                f"Expenses must be recorded in {budget.base_currency}.",
                field="currency",
            )

    split_method = validate_split_method(data.get("split_method"))
    splits_input = data.get("splits")
    if split_method != SplitMethod.EQUAL:
        _reject_past_member_splits(budget, splits_input)

    computed = _compute_validated_splits(budget, amount_cents, split_method, splits_input)

    expense_date = (
        parse_iso_date(data["date"]) if data.get("date") is not None else _utcnow()
    )

    expense = Expense(
        trip_id=trip_id,
        title=data.get("title"),
        amount_cents=amount_cents,
        currency=budget.base_currency,
        category=data.get("category"),
        paid_by=paid_by,
        created_by=caller_id,
        split_method=split_method,
        date=expense_date,
        notes=data.get("notes"),
        splits=[
            ExpenseSplit(
                user_id=row["user_id"],
                amount_cents=row["amount_cents"],
                percentage=row.get("percentage"),
            )
            for row in computed
        ],
    )
    session.add(expense)
    sync_trip_budget_summary(trip_id, session)

    logger.info(
        "Expense %s created on trip %s by user %s (%s cents, %s)",
        expense.id, trip_id, caller_id, amount_cents, split_method.value,
    )
    return _snapshot(budget, session)


def update_expense(
        expense_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> dict:
    """
    Partially updates an expense.

    Editable: title, amount, category, splits, date, notes. Sending
    splitMethod, createdBy, paidBy or tripId fails with IMMUTABLE_FIELD.

    When amount or splits change, splits are recomputed with the expense's
    stored split method and re-validated. With amount alone, custom splits
    keep their amounts (so they must still add up) and percentage splits are
    re-derived from their stored percentages.

    Everything is validated before the first attribute is touched, so a
    failed update leaves the expense as it was.
    """
    validate_id(expense_id, "expenseId")
    expense = _get_expense_or_404(expense_id, session)
    budget = _get_budget_by_trip_or_404(expense.trip_id, session)

    ensure_member_access(budget, caller_id)
    ensure_active_member(budget, caller_id)
    enforce_expense_permission(
        ExpenseAction.EDIT,
        is_budget_creator(budget, caller_id),
        caller_id,
        expense.created_by,
        budget,
    )

    for name, wire_name in IMMUTABLE_EXPENSE_FIELDS.items():
        if name in data:
            raise ValidationFailed(
                ErrorCode.IMMUTABLE_FIELD,
                f"{wire_name} cannot be updated.",
                field=wire_name,
            )

    amount_cents = expense.amount_cents
    if "amount" in data:
        amount_cents = to_cents(validate_amount(data["amount"]))

    new_date = None
    if data.get("date") is not None:
        new_date = parse_iso_date(data["date"])

    new_splits = data.get("splits")
    computed = None
    if new_splits is not None or "amount" in data:
        if new_splits is not None:
            if expense.split_method != SplitMethod.EQUAL:
                _reject_past_member_splits(budget, new_splits)
            splits_input = new_splits
        else:
            splits_input = _stored_split_input(expense)
        computed = _compute_validated_splits(
            budget, amount_cents, expense.split_method, splits_input,
        )

    # ── Apply ──────────────────────────────────────────────────────────────
    # A lazy load of expense.splits mid-apply would autoflush the new amount
    # against the old split rows and trip the split-sum guard.
    with session.no_autoflush:
        if computed is not None:
            _replace_splits(expense, computed)
        for name in ("title", "category", "notes"):
            if name in data:
                setattr(expense, name, data[name])
        if new_date is not None:
            expense.date = new_date
        expense.amount_cents = amount_cents

    sync_trip_budget_summary(expense.trip_id, session)

    logger.info("Expense %s updated by user %s", expense_id, caller_id)
    return _snapshot(budget, session)


def delete_expense(expense_id: int, caller_id: int, session: Session) -> dict:
    """Hard-deletes an expense and its splits. Same permission as update."""
    validate_id(expense_id, "expenseId")
    expense = _get_expense_or_404(expense_id, session)
    budget = _get_budget_by_trip_or_404(expense.trip_id, session)

    ensure_member_access(budget, caller_id)
    ensure_active_member(budget, caller_id)
    enforce_expense_permission(
        ExpenseAction.DELETE,
        is_budget_creator(budget, caller_id),
        caller_id,
        expense.created_by,
        budget,
    )

    trip_id = expense.trip_id
    session.delete(expense)
    sync_trip_budget_summary(trip_id, session)

    logger.info("Expense %s deleted by user %s", expense_id, caller_id)
    return _snapshot(budget, session)

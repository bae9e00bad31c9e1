"""Inventory: items per organisational unit and their stock movements. Stock is derived, never stored."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.auth.schemas import ActingUser
from fellowship.auth.scoping import can_manage_record, scope
from fellowship.core.enums import MovementDirection, ScopedResource, UserRole
from fellowship.core.exceptions import ForbiddenError, NotFoundError, ValidationFailed
from fellowship.core.level_scope import get_live_site, get_live_small_group
from fellowship.core.models import FinancialTransaction, InventoryItem, InventoryMovement, Report
from fellowship.core.result import service_result
from fellowship.core.timeutils import as_aware

from .schemas import InventoryItemCreate, InventoryItemResponse, InventoryMovementCreate, InventoryMovementResponse

logger = logging.getLogger(__name__)


async def current_stock(db: AsyncSession, item_id: UUID) -> int:
    """Sum of incoming minus sum of outgoing quantities."""
    signed = case(
        (InventoryMovement.direction == MovementDirection.incoming.value, InventoryMovement.quantity),
        else_=-InventoryMovement.quantity,
    )
    result = await db.execute(select(func.coalesce(func.sum(signed), 0)).where(InventoryMovement.item_id == item_id))
    return int(result.scalar_one())


def _item_response(item: InventoryItem, stock: int) -> InventoryItemResponse:
    return InventoryItemResponse(
        id=item.id,
        name=item.name,
        category=item.category,
        unit=item.unit,
        description=item.description,
        site_id=item.site_id,
        small_group_id=item.small_group_id,
        created_by_id=item.created_by_id,
        created_at=as_aware(item.created_at),
        current_stock=stock,
    )


async def _get_visible_item(
    db: AsyncSession, user: ActingUser, item_id: UUID, for_update: bool = False
) -> InventoryItem:
    stmt = select(InventoryItem).where(InventoryItem.id == item_id, scope(user, ScopedResource.inventory))
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    item = result.scalar_one_or_none()
    if item is None:
        raise NotFoundError("Inventory item not found")
    return item


@service_result
async def create_item(db: AsyncSession, user: ActingUser, payload: InventoryItemCreate) -> InventoryItemResponse:
    site_id = payload.site_id
    small_group_id = payload.small_group_id
    if user.role == UserRole.SITE_COORDINATOR:
        if user.site_id is None or (site_id is not None and site_id != user.site_id):
            raise ForbiddenError("Site coordinators can only add inventory for their own site")
        site_id = user.site_id
    elif not user.is_national:
        raise ForbiddenError("Only national and site coordinators can add inventory items")

    if small_group_id is not None:
        group = await get_live_small_group(db, small_group_id)
        if site_id is not None and group.site_id != site_id:
            raise ValidationFailed("Small group does not belong to the given site")
        site_id = group.site_id
    elif site_id is not None:
        await get_live_site(db, site_id)

    item = InventoryItem(
        name=payload.name.strip(),
        category=payload.category.strip(),
        unit=payload.unit.strip(),
        description=payload.description,
        site_id=site_id,
        small_group_id=small_group_id,
        created_by_id=user.id,
    )
    db.add(item)
    await db.flush()
    log_audit(db, user.id, "create", "inventory_item", item.id, {"name": item.name, "site_id": str(site_id) if site_id else None})
    await db.commit()
    await db.refresh(item)
    return _item_response(item, 0)


@service_result
async def list_items(db: AsyncSession, user: ActingUser, category: Optional[str] = None) -> List[InventoryItemResponse]:
    conditions = [scope(user, ScopedResource.inventory)]
    if category:
        conditions.append(InventoryItem.category == category)
    result = await db.execute(select(InventoryItem).where(and_(*conditions)).order_by(InventoryItem.name))
    items = result.scalars().all()
    return [_item_response(item, await current_stock(db, item.id)) for item in items]


@service_result
async def get_item(db: AsyncSession, user: ActingUser, item_id: UUID) -> InventoryItemResponse:
    item = await _get_visible_item(db, user, item_id)
    return _item_response(item, await current_stock(db, item.id))


@service_result
async def record_movement(
    db: AsyncSession, user: ActingUser, item_id: UUID, payload: InventoryMovementCreate
) -> InventoryMovementResponse:
    """Outgoing movements may not take the stock below zero. The item row is locked while stock is computed."""
    item = await _get_visible_item(db, user, item_id, for_update=True)
    if not can_manage_record(user, item.site_id, item.small_group_id):
        raise ForbiddenError("You cannot record movements for this item")
    if payload.related_transaction_id and await db.get(FinancialTransaction, payload.related_transaction_id) is None:
        raise NotFoundError("Related transaction not found")
    if payload.related_report_id and await db.get(Report, payload.related_report_id) is None:
        raise NotFoundError("Related report not found")

    stock = await current_stock(db, item.id)
    if payload.direction == MovementDirection.outgoing:
        if payload.quantity > stock:
            raise ValidationFailed(f"Insufficient stock: {stock} {item.unit} available")
        stock_after = stock - payload.quantity
    else:
        stock_after = stock + payload.quantity

    movement = InventoryMovement(
        item_id=item.id,
        direction=payload.direction.value,
        quantity=payload.quantity,
        date=payload.date,
        reason=payload.reason.strip(),
        related_transaction_id=payload.related_transaction_id,
        related_report_id=payload.related_report_id,
        recorded_by_id=user.id,
    )
    db.add(movement)
    await db.flush()
    log_audit(
        db,
        user.id,
        "create",
        "inventory_movement",
        movement.id,
        {"item_id": str(item.id), "direction": movement.direction, "quantity": movement.quantity},
    )
    await db.commit()
    await db.refresh(movement)
    logger.info("Inventory %s %s x%s on item %s", movement.direction, movement.reason, movement.quantity, item.id)
    return InventoryMovementResponse(
        id=movement.id,
        item_id=movement.item_id,
        direction=MovementDirection(movement.direction),
        quantity=movement.quantity,
        date=movement.date,
        reason=movement.reason,
        related_transaction_id=movement.related_transaction_id,
        related_report_id=movement.related_report_id,
        recorded_by_id=movement.recorded_by_id,
        created_at=as_aware(movement.created_at),
        stock_after=stock_after,
    )


@service_result
async def list_movements(db: AsyncSession, user: ActingUser, item_id: UUID) -> List[InventoryMovementResponse]:
    item = await _get_visible_item(db, user, item_id)
    result = await db.execute(
        select(InventoryMovement)
        .where(InventoryMovement.item_id == item.id)
        .order_by(InventoryMovement.date, InventoryMovement.created_at)
    )
    running = 0
    out = []
    for m in result.scalars().all():
        running += m.quantity if m.direction == MovementDirection.incoming.value else -m.quantity
        out.append(
            InventoryMovementResponse(
                id=m.id,
                item_id=m.item_id,
                direction=MovementDirection(m.direction),
                quantity=m.quantity,
                date=m.date,
                reason=m.reason,
                related_transaction_id=m.related_transaction_id,
                related_report_id=m.related_report_id,
                recorded_by_id=m.recorded_by_id,
                created_at=as_aware(m.created_at),
                stock_after=running,
            )
        )
    return out

import logging
from datetime import datetime, time
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.logging_config import log_change
from shared.security_config import validate_password_strength
from shared.utils import (
    ConflictError, NotFoundError, StateError, UnauthorizedException, ValidationError,
    create_access_token, create_refresh_token, get_password_hash, unit_of_work, utcnow, verify_password,
)
from storefront.lifecycle import ensure_editable, toggle, transition
from storefront.models import AppUser, Lifecycle, Order, OrderStatus, ShippingAddress, UserRole
from storefront.pricing import to_cents
from storefront.querying import SortDirection, UserSort, apply_sort, contains, paginate
from storefront.schemas import (
    DeletionEligibility, ProfileUpdate, Token, UserActivitySummary, UserRegister, UserStatistics, UserUpdate,
)

logger = logging.getLogger("storefront.users")

USER_SORT_COLUMNS = {
    UserSort.USERNAME: AppUser.username,
    UserSort.EMAIL: AppUser.email,
    UserSort.CREATED: AppUser.created_date,
    UserSort.LAST_LOGIN: AppUser.last_login_date,
}


def check_password(password: str) -> None:
    result = validate_password_strength(password)
    if not result.is_valid:
        raise ValidationError("Password does not meet requirements", context={"errors": result.errors})


def issue_tokens(user: AppUser) -> Token:
    claims = {"sub": str(user.id), "role": user.role.value, "username": user.username}
    return Token(access_token=create_access_token(claims), refresh_token=create_refresh_token(claims))


class UserService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def _load(self, session: AsyncSession, user_id: int) -> AppUser:
        user = await session.get(AppUser, user_id)
        if user is None:
            raise NotFoundError("User not found", context={"user_id": user_id})
        return user

    async def _ensure_unique(self, session: AsyncSession, username: Optional[str] = None, email: Optional[str] = None,
                             exclude_id: Optional[int] = None):
        checks = [
            ("username", AppUser.username, username),
            ("email", AppUser.email, email),
        ]
        for field, column, value in checks:
            if value is None:
                continue
            stmt = select(AppUser.id).where(func.lower(column) == value.strip().lower())
            if exclude_id is not None:
                stmt = stmt.where(AppUser.id != exclude_id)
            if await session.scalar(stmt.limit(1)) is not None:
                raise ConflictError(f"{field.capitalize()} already in use", context={field: value})

    # --- Accounts ---
    async def register(self, data: UserRegister) -> AppUser:
        return await self.create_user(data, UserRole.CUSTOMER)

    async def create_user(self, data: UserRegister, role: UserRole = UserRole.CUSTOMER) -> AppUser:
        check_password(data.password)
        async with unit_of_work(self.session_factory) as session:
            await self._ensure_unique(session, data.username, data.email)
            user = AppUser(
                username=data.username.strip(),
                email=data.email.strip().lower(),
                password_hash=get_password_hash(data.password),
                role=role,
                first_name=data.first_name,
                last_name=data.last_name,
                phone_number=data.phone_number,
            )
            session.add(user)
            await session.flush()
        log_change(logger, "created", "AppUser", user.id, role=role.value)
        return user

    async def authenticate(self, login: str, password: str) -> Tuple[AppUser, Token]:
        """
        Check credentials by username or email and record the login.

        Unknown users, bad passwords and inactive accounts all fail the same way.
        """
        key = login.strip().lower()
        async with unit_of_work(self.session_factory) as session:
            user = await session.scalar(
                select(AppUser).where(or_(func.lower(AppUser.username) == key, func.lower(AppUser.email) == key))
            )
            if user is None or not verify_password(password, user.password_hash) or not user.is_active:
                logger.warning("Failed login", extra={"action": "login_failed", "entity": "AppUser"})
                raise UnauthorizedException("Incorrect username/email or password")
            user.last_login_date = utcnow()
            user.login_count += 1
        logger.info("User logged in", extra={"user_id": user.id, "entity": "AppUser", "entity_id": user.id, "action": "login"})
        return user, issue_tokens(user)

    async def refresh(self, user_id: int) -> Token:
        async with unit_of_work(self.session_factory) as session:
            user = await self._load(session, user_id)
            if not user.is_active:
                raise UnauthorizedException("Account is not active")
        return issue_tokens(user)

    async def get_user(self, user_id: int) -> AppUser:
        async with unit_of_work(self.session_factory) as session:
            return await self._load(session, user_id)

    async def list_users(
        self,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        lifecycle: Optional[Lifecycle] = None,
        sort: UserSort = UserSort.CREATED,
        direction: SortDirection = SortDirection.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[AppUser], int]:
        stmt = select(AppUser)
        if search:
            stmt = stmt.where(or_(
                contains(AppUser.username, search),
                contains(AppUser.email, search),
                contains(AppUser.first_name, search),
                contains(AppUser.last_name, search),
            ))
        if role is not None:
            stmt = stmt.where(AppUser.role == role)
        if lifecycle is not None:
            stmt = stmt.where(AppUser.lifecycle == lifecycle)
        stmt = apply_sort(stmt, USER_SORT_COLUMNS, sort, direction, AppUser.id)
        async with unit_of_work(self.session_factory) as session:
            return await paginate(session, stmt, page, page_size)

    async def update_user(self, user_id: int, data: UserUpdate) -> AppUser:
        async with unit_of_work(self.session_factory) as session:
            user = ensure_editable(await self._load(session, user_id))
            changes = data.model_dump(exclude_unset=True)
            await self._ensure_unique(session, changes.get("username"), changes.get("email"), exclude_id=user_id)
            if "email" in changes and changes["email"]:
                changes["email"] = changes["email"].strip().lower()
            for field, value in changes.items():
                if value is None and field in ("username", "email", "role"):
                    continue
                setattr(user, field, value)
            user.touch()
        log_change(logger, "updated", "AppUser", user_id, fields=sorted(changes))
        return user

    async def update_profile(self, user_id: int, data: ProfileUpdate) -> AppUser:
        async with unit_of_work(self.session_factory) as session:
            user = ensure_editable(await self._load(session, user_id))
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(user, field, value)
            user.touch()
        log_change(logger, "profile_updated", "AppUser", user_id)
        return user

    async def change_role(self, user_id: int, role: UserRole) -> AppUser:
        async with unit_of_work(self.session_factory) as session:
            user = ensure_editable(await self._load(session, user_id))
            previous = user.role
            user.role = role
            user.touch()
        log_change(logger, "role_changed", "AppUser", user_id, previous=previous.value, role=role.value)
        return user

    async def reset_password(self, user_id: int, new_password: str) -> None:
        check_password(new_password)
        async with unit_of_work(self.session_factory) as session:
            user = ensure_editable(await self._load(session, user_id))
            user.password_hash = get_password_hash(new_password)
            user.touch()
        log_change(logger, "password_reset", "AppUser", user_id)

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        check_password(new_password)
        async with unit_of_work(self.session_factory) as session:
            user = ensure_editable(await self._load(session, user_id))
            if not verify_password(current_password, user.password_hash):
                raise ValidationError("Current password is incorrect")
            user.password_hash = get_password_hash(new_password)
            user.touch()
        log_change(logger, "password_changed", "AppUser", user_id)

    async def toggle_status(self, user_id: int) -> AppUser:
        async with unit_of_work(self.session_factory) as session:
            user = toggle(await self._load(session, user_id))
        log_change(logger, "toggled", "AppUser", user_id, lifecycle=user.lifecycle.value)
        return user

    async def delete_user(self, user_id: int) -> AppUser:
        async with unit_of_work(self.session_factory) as session:
            user = transition(await self._load(session, user_id), Lifecycle.DELETED)
        log_change(logger, "deleted", "AppUser", user_id)
        return user

    async def _eligibility(self, session: AsyncSession, user_id: int) -> DeletionEligibility:
        await self._load(session, user_id)
        order_count = await session.scalar(select(func.count(Order.id)).where(Order.user_id == user_id)) or 0
        spent = await session.scalar(
            select(func.coalesce(func.sum(Order.total_amount), 0))
            .where(Order.user_id == user_id, Order.status == OrderStatus.DELIVERED)
        )
        address_count = await session.scalar(
            select(func.count(ShippingAddress.id)).where(ShippingAddress.user_id == user_id)
        ) or 0

        dependencies = []
        if order_count:
            dependencies.append(f"{order_count} order(s)")
        if address_count:
            dependencies.append(f"{address_count} shipping address(es)")

        if order_count:
            reason = "User has order history; only soft delete is allowed"
        else:
            reason = "User can be permanently deleted"
        return DeletionEligibility(
            user_id=user_id,
            can_be_deleted=True,
            can_be_hard_deleted=order_count == 0,
            reason=reason,
            order_count=order_count,
            total_spent=to_cents(Decimal(str(spent or 0))),
            dependencies=dependencies,
        )

    async def check_deletion_eligibility(self, user_id: int) -> DeletionEligibility:
        async with unit_of_work(self.session_factory) as session:
            return await self._eligibility(session, user_id)

    async def hard_delete_user(self, user_id: int) -> None:
        """Remove the account and its addresses. Refused once the user has ordered."""
        async with unit_of_work(self.session_factory) as session:
            eligibility = await self._eligibility(session, user_id)
            if not eligibility.can_be_hard_deleted:
                raise StateError(eligibility.reason, context={"user_id": user_id, "order_count": eligibility.order_count})
            await session.execute(delete(ShippingAddress).where(ShippingAddress.user_id == user_id))
            await session.delete(await self._load(session, user_id))
        log_change(logger, "hard_deleted", "AppUser", user_id)

    # --- Reporting ---
    async def get_statistics(self) -> UserStatistics:
        month_start = datetime.combine(utcnow().date().replace(day=1), time.min)

        async def count(*criteria) -> int:
            return await session.scalar(select(func.count(AppUser.id)).where(*criteria)) or 0

        async with unit_of_work(self.session_factory) as session:
            return UserStatistics(
                total_users=await count(),
                active_users=await count(AppUser.lifecycle == Lifecycle.ACTIVE),
                disabled_users=await count(AppUser.lifecycle == Lifecycle.DISABLED),
                deleted_users=await count(AppUser.lifecycle == Lifecycle.DELETED),
                admin_users=await count(AppUser.role == UserRole.ADMIN),
                customer_users=await count(AppUser.role == UserRole.CUSTOMER),
                new_users_this_month=await count(AppUser.created_date >= month_start),
            )

    async def get_activity_summary(self, user_id: int) -> UserActivitySummary:
        async with unit_of_work(self.session_factory) as session:
            user = await self._load(session, user_id)
            order_count, total_spent, last_order = (await session.execute(
                select(
                    func.count(Order.id),
                    func.coalesce(func.sum(Order.total_amount), 0),
                    func.max(Order.order_date),
                ).where(Order.user_id == user_id, Order.status != OrderStatus.CANCELLED)
            )).one()
            address_count = await session.scalar(
                select(func.count(ShippingAddress.id)).where(ShippingAddress.user_id == user_id)
            )
        return UserActivitySummary(
            user_id=user_id,
            order_count=order_count or 0,
            total_spent=to_cents(Decimal(str(total_spent or 0))),
            last_order_date=last_order,
            address_count=address_count or 0,
            last_login_date=user.last_login_date,
            login_count=user.login_count,
        )

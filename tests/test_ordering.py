import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.exceptions import ValidationException
from planboard.services.ordering_service import OrderingService
from planboard.services.task_service import TaskService
from planboard.schemas.task import TaskCreate
from tests.conftest import create_task_row


def ids(n):
    return [uuid.uuid4() for _ in range(n)]


class TestResequence:
    """Pure resequencing helpers."""

    def test_append_when_no_target(self):
        a, b, c = ids(3)
        assert OrderingService.resequence([a, b], c) == {a: 0, b: 1, c: 2}

    def test_insert_before_target(self):
        a, b, c = ids(3)
        result = OrderingService.resequence([a, b, c], c, target_id=a)
        assert sorted(result, key=result.get) == [c, a, b]

    def test_move_down_within_scope(self):
        a, b, c, d = ids(4)
        result = OrderingService.resequence([a, b, c, d], a, target_id=d)
        assert sorted(result, key=result.get) == [b, c, a, d]

    def test_orders_are_contiguous_and_ids_preserved(self):
        scope = ids(6)
        moved = scope[2]
        result = OrderingService.resequence(scope, moved, target_id=scope[5])
        assert set(result) == set(scope)
        assert sorted(result.values()) == list(range(len(scope)))

    def test_unknown_target_rejected(self):
        a, b, stranger = ids(3)
        with pytest.raises(ValidationException):
            OrderingService.resequence([a, b], a, target_id=stranger)

    def test_target_equal_to_moved_keeps_position(self):
        a, b, c = ids(3)
        assert OrderingService.resequence([a, b, c], b, target_id=b) == {
            a: 0,
            b: 1,
            c: 2,
        }

    def test_resequence_at_clamps_index(self):
        a, b, c = ids(3)
        result = OrderingService.resequence_at([a, b], c, 99)
        assert result == {a: 0, b: 1, c: 2}
        result = OrderingService.resequence_at([a, b], c, -5)
        assert result == {c: 0, a: 1, b: 2}

    def test_assign_orders_drops_repeats(self):
        a, b = ids(2)
        assert OrderingService.assign_orders([a, b, a]) == {a: 0, b: 1}


class TestNextOrder:
    """Order assignment on create."""

    @pytest.mark.asyncio
    async def test_first_and_second_task_in_scope(self, test_db: AsyncSession, project, admin):
        service = TaskService(test_db)

        first = await service.create_task(
            TaskCreate(title="A", project_id=project.id), admin.id
        )
        second = await service.create_task(
            TaskCreate(title="B", project_id=project.id), admin.id
        )

        assert first.order == 0
        assert second.order == 1

    @pytest.mark.asyncio
    async def test_scopes_are_independent(self, test_db: AsyncSession, project):
        parent = await create_task_row(test_db, project, "Parent", order=7)
        ordering = OrderingService(test_db)

        assert await ordering.next_order(project.id, parent.id) == 0
        assert await ordering.next_order(project.id, None) == 8


class TestScopeMoves:
    """Moves that rewrite scopes in the datastore."""

    @pytest.mark.asyncio
    async def test_move_within_scope(self, test_db: AsyncSession, project):
        t1 = await create_task_row(test_db, project, "T1", order=0)
        t2 = await create_task_row(test_db, project, "T2", order=1)
        t3 = await create_task_row(test_db, project, "T3", order=2)
        ordering = OrderingService(test_db)

        scope = await ordering.move_within_scope(t3, target_task_id=t1.id)
        await test_db.commit()

        assert [t.id for t in scope] == [t3.id, t1.id, t2.id]
        assert [t.order for t in scope] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_legacy_equal_orders_are_normalised(self, test_db: AsyncSession, project):
        tasks = [await create_task_row(test_db, project, f"T{i}", order=0) for i in range(3)]
        ordering = OrderingService(test_db)

        scope = await ordering.move_within_scope(tasks[0])
        await test_db.commit()

        assert sorted(t.order for t in scope) == [0, 1, 2]
        assert scope[-1].id == tasks[0].id

    @pytest.mark.asyncio
    async def test_move_between_tree_scopes(self, test_db: AsyncSession, project):
        parent = await create_task_row(test_db, project, "Parent", order=0)
        a = await create_task_row(test_db, project, "A", order=1)
        b = await create_task_row(test_db, project, "B", order=2)
        child = await create_task_row(test_db, project, "Child", order=0, parent=parent)
        ordering = OrderingService(test_db)

        result = await ordering.move_between_scopes(
            b, dest_parent_id=parent.id, dest_status_id=None, target_task_id=child.id
        )
        await test_db.commit()

        source, destination = result.scopes
        assert [t.id for t in source] == [parent.id, a.id]
        assert [t.order for t in source] == [0, 1]
        assert [t.id for t in destination] == [b.id, child.id]
        assert [t.order for t in destination] == [0, 1]
        assert b.parent_id == parent.id

    @pytest.mark.asyncio
    async def test_bad_target_leaves_scopes_untouched(self, test_db: AsyncSession, project):
        a = await create_task_row(test_db, project, "A", order=0)
        b = await create_task_row(test_db, project, "B", order=1)
        parent = await create_task_row(test_db, project, "Parent", order=2)
        ordering = OrderingService(test_db)

        with pytest.raises(ValidationException):
            await ordering.move_between_scopes(
                a, dest_parent_id=parent.id, dest_status_id=None, target_task_id=b.id
            )

        assert a.parent_id is None
        assert a.order == 0

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.exceptions import (
    CycleError,
    CrossProjectError,
    NotFoundException,
    SelfParentError,
)
from planboard.models import Project
from planboard.schemas.task import TaskUpdate
from planboard.services.hierarchy_service import HierarchyService
from planboard.services.task_service import TaskService
from tests.conftest import create_task_row


class TestValidateReparent:
    """Reparent validation rules."""

    @pytest.mark.asyncio
    async def test_valid_reparent_returns_parent(self, test_db: AsyncSession, project):
        a = await create_task_row(test_db, project, "A")
        b = await create_task_row(test_db, project, "B", order=1)

        parent = await HierarchyService(test_db).validate_reparent(a.id, b.id, project.id)
        assert parent.id == b.id

    @pytest.mark.asyncio
    async def test_self_parent_rejected(self, test_db: AsyncSession, project):
        a = await create_task_row(test_db, project, "A")

        with pytest.raises(SelfParentError):
            await HierarchyService(test_db).validate_reparent(a.id, a.id, project.id)

    @pytest.mark.asyncio
    async def test_missing_parent_rejected(self, test_db: AsyncSession, project):
        a = await create_task_row(test_db, project, "A")

        with pytest.raises(NotFoundException):
            await HierarchyService(test_db).validate_reparent(a.id, uuid.uuid4(), project.id)

    @pytest.mark.asyncio
    async def test_cross_project_parent_rejected(self, test_db: AsyncSession, project, owner):
        other = Project(name="Other", created_by_id=owner.id)
        test_db.add(other)
        await test_db.commit()
        a = await create_task_row(test_db, project, "A")
        foreign = await create_task_row(test_db, other, "Foreign")

        with pytest.raises(CrossProjectError):
            await HierarchyService(test_db).validate_reparent(a.id, foreign.id, project.id)

    @pytest.mark.asyncio
    async def test_descendant_as_parent_is_a_cycle(self, test_db: AsyncSession, project):
        a = await create_task_row(test_db, project, "A")
        b = await create_task_row(test_db, project, "B", parent=a)
        c = await create_task_row(test_db, project, "C", parent=b)

        with pytest.raises(CycleError):
            await HierarchyService(test_db).validate_reparent(a.id, c.id, project.id)

    @pytest.mark.asyncio
    async def test_depth_limit_counts_as_cycle(self, test_db: AsyncSession, project):
        top = await create_task_row(test_db, project, "Top")
        current = top
        for i in range(4):
            current = await create_task_row(test_db, project, f"L{i}", parent=current)
        loose = await create_task_row(test_db, project, "Loose", order=1)

        with pytest.raises(CycleError):
            await HierarchyService(test_db, max_depth=3).validate_reparent(
                loose.id, current.id, project.id
            )
        parent = await HierarchyService(test_db, max_depth=10).validate_reparent(
            loose.id, current.id, project.id
        )
        assert parent.id == current.id

    @pytest.mark.asyncio
    async def test_ancestor_ids_nearest_first(self, test_db: AsyncSession, project):
        a = await create_task_row(test_db, project, "A")
        b = await create_task_row(test_db, project, "B", parent=a)
        c = await create_task_row(test_db, project, "C", parent=b)

        assert await HierarchyService(test_db).ancestor_ids(c.id) == [b.id, a.id]
        assert await HierarchyService(test_db).ancestor_ids(a.id) == []


class TestCyclePrevention:
    """Reparenting through the task service keeps the tree acyclic."""

    @pytest.mark.asyncio
    async def test_reparent_under_descendant_leaves_tree_unchanged(
        self, test_db: AsyncSession, project, admin
    ):
        a = await create_task_row(test_db, project, "A")
        b = await create_task_row(test_db, project, "B", parent=a)
        a_id, b_id, admin_id = a.id, b.id, admin.id
        service = TaskService(test_db)

        with pytest.raises(CycleError):
            await service.update_task(a_id, TaskUpdate(parent_id=b_id), admin_id)
        await test_db.rollback()

        with pytest.raises(CycleError):
            await service.reorder_task(a_id, admin_id, new_parent_id=b_id)
        await test_db.rollback()

        refreshed_a = await service.get_task_by_id(a_id)
        refreshed_b = await service.get_task_by_id(b_id)
        assert refreshed_a.parent_id is None
        assert refreshed_b.parent_id == a_id

    @pytest.mark.asyncio
    async def test_no_task_is_its_own_ancestor_after_moves(
        self, test_db: AsyncSession, project, admin
    ):
        tasks = [await create_task_row(test_db, project, f"T{i}", order=i) for i in range(4)]
        task_ids = [task.id for task in tasks]
        admin_id = admin.id
        service = TaskService(test_db)
        moves = [(1, 0), (2, 1), (3, 2), (0, 3), (0, 2), (3, 0)]

        for child, parent in moves:
            try:
                await service.reorder_task(
                    task_ids[child], admin_id, new_parent_id=task_ids[parent]
                )
            except CycleError:
                await test_db.rollback()

        hierarchy = HierarchyService(test_db)
        for task_id in task_ids:
            assert task_id not in await hierarchy.ancestor_ids(task_id)

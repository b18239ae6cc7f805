import uuid

import pytest
import pytest_asyncio
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.exceptions import (
    ConflictError,
    CrossProjectError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from planboard.models import (
    Activity,
    Project,
    Task,
    TaskAssignee,
    TaskPriority,
    TeamMember,
)
from planboard.schemas.task import TaskCreate, TaskFilters, TaskUpdate
from planboard.services.task_service import TaskService
from tests.conftest import assign, create_task_row, create_user


class TestCreateTask:
    """Task creation."""

    @pytest.mark.asyncio
    async def test_defaults_to_project_default_status(
        self, test_db: AsyncSession, project, statuses, member
    ):
        task = await TaskService(test_db).create_task(
            TaskCreate(title="  Plan sprint  ", project_id=project.id), member.id
        )

        assert task.title == "Plan sprint"
        assert task.status_id == statuses["To Do"].id
        assert task.completed is False

    @pytest.mark.asyncio
    async def test_subtask_order_is_scoped_to_parent(
        self, test_db: AsyncSession, project, member
    ):
        service = TaskService(test_db)
        parent = await service.create_task(TaskCreate(title="P", project_id=project.id), member.id)
        first = await service.create_task(
            TaskCreate(title="C1", project_id=project.id, parent_id=parent.id), member.id
        )
        second = await service.create_task(
            TaskCreate(title="C2", project_id=project.id, parent_id=parent.id), member.id
        )

        assert (first.order, second.order) == (0, 1)
        assert second.parent_id == parent.id

    @pytest.mark.asyncio
    async def test_assignees_join_the_team(self, test_db: AsyncSession, project, member):
        newcomer = await create_user(test_db)

        task = await TaskService(test_db).create_task(
            TaskCreate(title="T", project_id=project.id, assignee_ids=[newcomer.id]),
            member.id,
        )

        assert [a.user_id for a in task.assignees] == [newcomer.id]
        membership = await test_db.scalar(
            select(TeamMember).where(
                TeamMember.project_id == project.id, TeamMember.user_id == newcomer.id
            )
        )
        assert membership is not None

    @pytest.mark.asyncio
    async def test_invalid_assignee_rejects_whole_request(
        self, test_db: AsyncSession, project, member
    ):
        with pytest.raises(ValidationException):
            await TaskService(test_db).create_task(
                TaskCreate(title="T", project_id=project.id, assignee_ids=[uuid.uuid4()]),
                member.id,
            )
        assert await test_db.scalar(select(func.count(Task.id))) == 0

    @pytest.mark.asyncio
    async def test_outsider_cannot_create(self, test_db: AsyncSession, project, outsider):
        with pytest.raises(ForbiddenException):
            await TaskService(test_db).create_task(
                TaskCreate(title="T", project_id=project.id), outsider.id
            )

    @pytest.mark.asyncio
    async def test_missing_project(self, test_db: AsyncSession, admin):
        with pytest.raises(NotFoundException):
            await TaskService(test_db).create_task(
                TaskCreate(title="T", project_id=uuid.uuid4()), admin.id
            )

    @pytest.mark.asyncio
    async def test_parent_from_other_project_rejected(
        self, test_db: AsyncSession, project, owner
    ):
        other = Project(name="Other", created_by_id=owner.id)
        test_db.add(other)
        await test_db.commit()
        foreign = await create_task_row(test_db, other, "Foreign")

        with pytest.raises(CrossProjectError):
            await TaskService(test_db).create_task(
                TaskCreate(title="T", project_id=project.id, parent_id=foreign.id), owner.id
            )


class TestUpdateTask:
    """Partial updates."""

    @pytest.mark.asyncio
    async def test_only_sent_fields_change(self, test_db: AsyncSession, project, member):
        task = await create_task_row(test_db, project, "Original")
        task.description = "keep me"
        await test_db.commit()

        result = await TaskService(test_db).update_task(
            task.id, TaskUpdate(title="Renamed"), member.id
        )

        assert result.task.title == "Renamed"
        assert result.task.description == "keep me"
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_explicit_null_clears_field(self, test_db: AsyncSession, project, member):
        task = await create_task_row(test_db, project, "T")
        task.description = "old"
        await test_db.commit()

        result = await TaskService(test_db).update_task(
            task.id, TaskUpdate(description=None), member.id
        )

        assert result.task.description is None

    @pytest.mark.asyncio
    async def test_acting_user_is_auto_assigned(self, test_db: AsyncSession, project, member):
        task = await create_task_row(test_db, project, "T")

        result = await TaskService(test_db).update_task(
            task.id, TaskUpdate(priority="high"), member.id
        )

        assert member.id in [a.user_id for a in result.task.assignees]

    @pytest.mark.asyncio
    async def test_explicit_assignee_list_is_used_as_is(
        self, test_db: AsyncSession, project, member, owner
    ):
        task = await create_task_row(test_db, project, "T")

        result = await TaskService(test_db).update_task(
            task.id, TaskUpdate(assignee_ids=[owner.id]), member.id
        )

        assert [a.user_id for a in result.task.assignees] == [owner.id]

    @pytest.mark.asyncio
    async def test_assignee_failure_becomes_warning(
        self, test_db: AsyncSession, project, member
    ):
        task = await create_task_row(test_db, project, "Before")

        result = await TaskService(test_db).update_task(
            task.id, TaskUpdate(title="After", assignee_ids=[uuid.uuid4()]), member.id
        )

        assert result.task.title == "After"
        assert result.warnings
        assert await test_db.scalar(select(func.count(TaskAssignee.id))) == 0

    @pytest.mark.asyncio
    async def test_completion_is_described(self, test_db: AsyncSession, project, member):
        task = await create_task_row(test_db, project, "Ship")

        await TaskService(test_db).update_task(task.id, TaskUpdate(completed=True), member.id)

        descriptions = (
            await test_db.scalars(select(Activity.description).where(Activity.task_id == task.id))
        ).all()
        assert 'Task "Ship" was marked as completed' in descriptions

    @pytest.mark.asyncio
    async def test_reparent_appends_to_new_scope(self, test_db: AsyncSession, project, member):
        parent = await create_task_row(test_db, project, "Parent", 0)
        await create_task_row(test_db, project, "Existing", 0, parent=parent)
        loose = await create_task_row(test_db, project, "Loose", 1)

        result = await TaskService(test_db).update_task(
            loose.id, TaskUpdate(parent_id=parent.id), member.id
        )

        assert result.task.parent_id == parent.id
        assert result.task.order == 1

    @pytest.mark.asyncio
    async def test_status_change_through_update(
        self, test_db: AsyncSession, project, statuses, member
    ):
        task = await create_task_row(test_db, project, "T", 0, status=statuses["To Do"])

        result = await TaskService(test_db).update_task(
            task.id, TaskUpdate(status_id=statuses["Done"].id), member.id
        )

        assert result.task.status_id == statuses["Done"].id

    @pytest.mark.asyncio
    async def test_assignee_only_user_may_update(
        self, test_db: AsyncSession, project, outsider
    ):
        task = await create_task_row(test_db, project, "T")
        await assign(test_db, task, outsider)

        result = await TaskService(test_db).update_task(
            task.id, TaskUpdate(title="Changed by assignee"), outsider.id
        )

        assert result.task.title == "Changed by assignee"

    @pytest.mark.asyncio
    async def test_reparent_needs_update_on_new_parent(
        self, test_db: AsyncSession, project, outsider
    ):
        x = await create_task_row(test_db, project, "X", 0)
        y = await create_task_row(test_db, project, "Y", 1)
        await assign(test_db, x, outsider)
        x_id, y_id, outsider_id = x.id, y.id, outsider.id
        service = TaskService(test_db)

        with pytest.raises(ForbiddenException):
            await service.reorder_task(x_id, outsider_id, new_parent_id=y_id)
        with pytest.raises(ForbiddenException):
            await service.update_task(x_id, TaskUpdate(parent_id=y_id), outsider_id)

        parent_id = await test_db.scalar(select(Task.parent_id).where(Task.id == x_id))
        assert parent_id is None

    @pytest.mark.asyncio
    async def test_stranger_cannot_update(self, test_db: AsyncSession, project, outsider):
        task = await create_task_row(test_db, project, "T")

        with pytest.raises(ForbiddenException):
            await TaskService(test_db).update_task(task.id, TaskUpdate(title="X"), outsider.id)


class TestDeleteTask:
    """Deletion with and without cascade."""

    @pytest.mark.asyncio
    async def test_subtasks_block_delete_unless_cascade(
        self, test_db: AsyncSession, project, member
    ):
        parent = await create_task_row(test_db, project, "Parent")
        first = await create_task_row(test_db, project, "C1", 0, parent=parent)
        await create_task_row(test_db, project, "C2", 1, parent=parent)
        await create_task_row(test_db, project, "G", 0, parent=first)
        await assign(test_db, first, member)
        parent_id, member_id = parent.id, member.id
        service = TaskService(test_db)

        with pytest.raises(ConflictError):
            await service.delete_task(parent_id, member_id)
        assert await test_db.scalar(select(func.count(Task.id))) == 4

        await service.delete_task(parent_id, member_id, cascade=True)

        assert await test_db.scalar(select(func.count(Task.id))) == 0
        assert await test_db.scalar(select(func.count(TaskAssignee.id))) == 0
        deleted = await test_db.scalar(
            select(Activity).where(Activity.task_id == parent_id, Activity.action == "deleted")
        )
        assert deleted is not None

    @pytest.mark.asyncio
    async def test_leaf_delete(self, test_db: AsyncSession, project, member):
        leaf = await create_task_row(test_db, project, "Leaf")

        await TaskService(test_db).delete_task(leaf.id, member.id)

        assert await test_db.scalar(select(func.count(Task.id))) == 0


class TestReorderTask:
    """Tree reorders and moves."""

    @pytest.mark.asyncio
    async def test_same_parent_reorder(self, test_db: AsyncSession, project, member):
        a = await create_task_row(test_db, project, "A", 0)
        b = await create_task_row(test_db, project, "B", 1)
        c = await create_task_row(test_db, project, "C", 2)

        result = await TaskService(test_db).reorder_task(
            c.id, member.id, target_task_id=a.id, is_same_parent_reorder=True
        )

        assert [(t.id, t.order) for t in result.scopes[0]] == [(c.id, 0), (a.id, 1), (b.id, 2)]

    @pytest.mark.asyncio
    async def test_promote_subtask(self, test_db: AsyncSession, project, member):
        parent = await create_task_row(test_db, project, "Parent", 0)
        child = await create_task_row(test_db, project, "Child", 0, parent=parent)

        result = await TaskService(test_db).reorder_task(
            child.id, member.id, new_parent_id=None, target_task_id=parent.id
        )

        assert result.task.parent_id is None
        top_level = result.scopes[1]
        assert [t.id for t in top_level] == [child.id, parent.id]
        description = await test_db.scalar(
            select(Activity.description).where(Activity.task_id == child.id)
        )
        assert description == 'Subtask "Child" was promoted to a top-level task'


class TestListTasks:
    """Filtered, paged task listing."""

    @pytest_asyncio.fixture
    async def listing(self, test_db: AsyncSession, project, statuses, member):
        parent = await create_task_row(test_db, project, "Parent", 0, status=statuses["To Do"])
        urgent = await create_task_row(test_db, project, "Urgent", 1, status=statuses["Done"])
        child = await create_task_row(test_db, project, "Child", 0, parent=parent)
        urgent.priority = TaskPriority.HIGH
        await test_db.commit()
        await assign(test_db, urgent, member)
        return {"parent": parent, "urgent": urgent, "child": child}

    @staticmethod
    async def titles(test_db, project, member, page=1, size=20, **filters):
        tasks, total = await TaskService(test_db).list_tasks(
            project.id, member.id, TaskFilters(**filters), page, size
        )
        return [task.title for task in tasks], total

    @pytest.mark.asyncio
    async def test_top_level_by_default(self, test_db: AsyncSession, project, member, listing):
        assert await self.titles(test_db, project, member) == (["Parent", "Urgent"], 2)

    @pytest.mark.asyncio
    async def test_include_subtasks(self, test_db: AsyncSession, project, member, listing):
        titles, total = await self.titles(test_db, project, member, include_subtasks=True)

        assert total == 3
        assert sorted(titles) == ["Child", "Parent", "Urgent"]

    @pytest.mark.asyncio
    async def test_subtasks_of_parent(self, test_db: AsyncSession, project, member, listing):
        result = await self.titles(test_db, project, member, parent_id=listing["parent"].id)

        assert result == (["Child"], 1)

    @pytest.mark.asyncio
    async def test_status_filter(
        self, test_db: AsyncSession, project, statuses, member, listing
    ):
        result = await self.titles(test_db, project, member, status_id=statuses["Done"].id)

        assert result == (["Urgent"], 1)

    @pytest.mark.asyncio
    async def test_priority_filter(self, test_db: AsyncSession, project, member, listing):
        result = await self.titles(test_db, project, member, priority=[TaskPriority.HIGH])

        assert result == (["Urgent"], 1)

    @pytest.mark.asyncio
    async def test_assignee_filter(self, test_db: AsyncSession, project, member, listing):
        result = await self.titles(test_db, project, member, assignee_id=member.id)

        assert result == (["Urgent"], 1)

    @pytest.mark.asyncio
    async def test_pagination(self, test_db: AsyncSession, project, member, listing):
        first = await self.titles(test_db, project, member, page=1, size=1)
        second = await self.titles(test_db, project, member, page=2, size=1)
        beyond = await self.titles(test_db, project, member, page=3, size=1)

        assert first == (["Parent"], 2)
        assert second == (["Urgent"], 2)
        assert beyond == ([], 2)

    @pytest.mark.asyncio
    async def test_outsider_cannot_list(
        self, test_db: AsyncSession, project, outsider, listing
    ):
        with pytest.raises(ForbiddenException):
            await TaskService(test_db).list_tasks(project.id, outsider.id, TaskFilters())

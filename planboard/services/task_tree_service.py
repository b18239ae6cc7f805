"""
Breadth-first subtask loader.

Subtrees are loaded one level per query into a flat arena keyed by task id,
with a separate parent -> children index in display order.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.config import settings
from planboard.core.exceptions import NotFoundException
from planboard.models.task import Task

logger = logging.getLogger(__name__)


@dataclass
class TaskTree:
    root_id: UUID
    nodes: Dict[UUID, Task] = field(default_factory=dict)
    children: Dict[UUID, List[UUID]] = field(default_factory=dict)
    # Nodes at the depth limit that still have subtasks
    truncated: Set[UUID] = field(default_factory=set)

    @property
    def root(self) -> Task:
        return self.nodes[self.root_id]

    def descendant_ids(self, node_id: Optional[UUID] = None) -> List[UUID]:
        """Loaded descendants of a node in breadth-first order"""
        result: List[UUID] = []
        queue = list(self.children.get(node_id or self.root_id, []))
        while queue:
            current = queue.pop(0)
            result.append(current)
            queue.extend(self.children.get(current, []))
        return result

    def to_nested(self, node_id: Optional[UUID] = None) -> Dict[str, Any]:
        """Render a node and its loaded subtasks as nested dicts"""
        node_id = node_id or self.root_id
        task = self.nodes[node_id]
        return {
            "id": task.id,
            "title": task.title,
            "priority": task.priority,
            "status_id": task.status_id,
            "parent_id": task.parent_id,
            "order": task.order,
            "completed": task.completed,
            "subtasks": [self.to_nested(child) for child in self.children.get(node_id, [])],
            "truncated": node_id in self.truncated,
        }


class TaskTreeService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_subtree(
        self, root_id: UUID, max_depth: Optional[int] = None
    ) -> TaskTree:
        """
        Load a task and its subtasks down to max_depth levels.
        :param root_id: UUID of the root task.
        :param max_depth: Subtask levels to load; settings.TASK_TREE_MAX_DEPTH when None.
        :return: TaskTree arena.
        :raises NotFoundException: If the root task does not exist.
        """
        if max_depth is None:
            max_depth = settings.TASK_TREE_MAX_DEPTH

        root = await self.db.get(Task, root_id)
        if not root:
            raise NotFoundException("Task", str(root_id))

        tree = TaskTree(root_id=root_id, nodes={root_id: root})
        frontier = [root_id]
        depth = 0

        while frontier and depth < max_depth:
            stmt = (
                select(Task)
                .where(Task.parent_id.in_(frontier))
                .order_by(Task.order, Task.created_at, Task.id)
            )
            level = (await self.db.scalars(stmt)).all()

            next_frontier = []
            for task in level:
                if task.id in tree.nodes:
                    logger.error(f"Task {task.id} reached twice while loading {root_id}")
                    continue
                tree.nodes[task.id] = task
                tree.children.setdefault(task.parent_id, []).append(task.id)
                next_frontier.append(task.id)

            frontier = next_frontier
            depth += 1

        if frontier:
            stmt = select(Task.parent_id).where(Task.parent_id.in_(frontier)).distinct()
            tree.truncated = set((await self.db.scalars(stmt)).all())

        return tree

    async def descendant_ids(self, root_id: UUID) -> List[UUID]:
        """
        Every descendant id of a task in breadth-first order, walking ids only.
        Bounded by settings.MAX_HIERARCHY_DEPTH levels.
        """
        result: List[UUID] = []
        seen = {root_id}
        frontier = [root_id]
        depth = 0

        while frontier and depth < settings.MAX_HIERARCHY_DEPTH:
            stmt = (
                select(Task.id)
                .where(Task.parent_id.in_(frontier))
                .order_by(Task.order, Task.created_at, Task.id)
            )
            level = [i for i in (await self.db.scalars(stmt)).all() if i not in seen]
            seen.update(level)
            result.extend(level)
            frontier = level
            depth += 1

        return result

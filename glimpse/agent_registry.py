from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from glimpse.errors import AgentNotFound, DuplicateAgent

log = logging.getLogger(__name__)


class AgentType(str, Enum):
    GENERATOR = "generator"
    ANALYZER = "analyzer"
    VISUALIZER = "visualizer"
    LEARNER = "learner"


@dataclass
class Agent:
    id: str
    type: AgentType
    name: str
    description: str
    process: Callable[[Any], Awaitable[Any]]
    is_active: bool = True

    def describe(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
        }


class AgentRegistry:
    """Agents registered for one preview session, looked up by id.

    `is_processing` tells observers a call is in flight. It does not
    serialize calls: overlapping calls each set and clear it.
    """

    def __init__(self) -> None:
        self._agents: List[Agent] = []
        self.is_processing = False
        self.results: Any = None

    @property
    def agents(self) -> List[Agent]:
        return list(self._agents)

    def get(self, agent_id: str) -> Optional[Agent]:
        for agent in self._agents:
            if agent.id == agent_id:
                return agent
        return None

    def register(self, agent: Agent) -> None:
        if self.get(agent.id) is not None:
            raise DuplicateAgent(agent.id)
        self._agents.append(agent)
        log.debug("agent registered id=%s type=%s", agent.id, agent.type.value)

    async def run_one(self, agent_id: str, payload: Any) -> Any:
        self.is_processing = True
        try:
            agent = self.get(agent_id)
            if agent is None:
                raise AgentNotFound(agent_id)
            result = await agent.process(payload)
            self.results = result
            return result
        except Exception:
            log.exception("Agent execution error id=%s", agent_id)
            raise
        finally:
            self.is_processing = False

    async def run_pipeline(self, agent_ids: Iterable[str], initial_input: Any) -> Any:
        """Feed each agent's output to the next one, in order.

        Unknown and inactive agents are skipped; a failing stage stops the
        pipeline and its error is raised.
        """
        self.is_processing = True
        current = initial_input
        try:
            for agent_id in agent_ids:
                agent = self.get(agent_id)
                if agent is None or not agent.is_active:
                    continue
                current = await agent.process(current)
            self.results = current
            return current
        except Exception:
            log.exception("Pipeline execution error")
            raise
        finally:
            self.is_processing = False

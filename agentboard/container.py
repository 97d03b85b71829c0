#  AgentBoard - Dependency Injection Container
#
#  DeclarativeContainer wiring all services and their dependencies.
#
#  Depends on: db/connection.py, services/*
#  Used by:    app.py, routes/*

from dependency_injector import containers, providers

from agentboard.db.connection import Database
from agentboard.services.agent_session import AgentSession
from agentboard.services.executor import Executor
from agentboard.services.progress import ProgressManager
from agentboard.services.runs import RunService


class Container(containers.DeclarativeContainer):
    """DI container for AgentBoard.

    All services are Singletons: one instance per application lifecycle.
    Routes access them via @inject + Depends(Provide[Container.xxx]).
    Tests override them via container.xxx.override(providers.Object(mock)).
    """

    wiring_config = containers.WiringConfiguration(
        modules=[
            "agentboard.routes.projects",
            "agentboard.routes.tasks",
            "agentboard.routes.logs",
            "agentboard.routes.execute",
            "agentboard.routes.events",
        ]
    )

    # --- Core ---
    db = providers.Singleton(Database)
    agent = providers.Singleton(AgentSession)

    # --- Services ---
    progress = providers.Singleton(ProgressManager, db=db)
    runs = providers.Singleton(RunService, db=db)

    # --- Executor ---
    executor = providers.Singleton(Executor, progress=progress, agent=agent)

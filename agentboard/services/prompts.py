#  AgentBoard - Prompt Builder
#
#  Renders a task into the instruction text sent to the agent.
#  One template per project mode; pure functions, no I/O.
#
#  Depends on: models/enums.py, models/schemas.py
#  Used by:    services/executor.py

from agentboard.models.enums import ProjectMode
from agentboard.models.schemas import RunTask

# Section headings the research agent must produce, in order
RESEARCH_SECTIONS = ("Summary", "Key Findings", "Details", "Sources")


def build_prompt(
    mode: ProjectMode,
    task: RunTask,
    project_name: str,
    index: int,
    total: int,
    workspace_dir: str | None = None,
) -> str:
    """Render the agent instruction for task ``index`` (0-based) of ``total``.

    Build mode requires ``workspace_dir``; the caller guarantees it exists.
    """
    if mode == ProjectMode.RESEARCH:
        return build_research_prompt(task, project_name, index, total)
    if not workspace_dir:
        raise ValueError("Build-mode prompts require a workspace directory")
    return build_task_prompt(task, project_name, index, total, workspace_dir)


def build_task_prompt(
    task: RunTask, project_name: str, index: int, total: int, workspace_dir: str,
) -> str:
    return f"""You are an AI agent executing task {index + 1} of {total} for the project "{project_name}".

## Working Directory
Your working directory is: {workspace_dir}
All files you create or modify MUST be within this directory. Do not navigate outside of it.

## Task: {task.title}

{task.description}

## Instructions
- Execute this task thoroughly and completely.
- If the task involves creating files, write them with production-quality code.
- If the task involves configuration, ensure it is correct and complete.
- Provide a clear summary of what you accomplished when done.
- All work must stay within {workspace_dir}."""


def build_research_prompt(task: RunTask, project_name: str, index: int, total: int) -> str:
    summary, findings, details, sources = RESEARCH_SECTIONS
    return f"""You are a research agent executing research task {index + 1} of {total} for the project "{project_name}".

## Research Topic: {task.title}

{task.description}

## Instructions
You must research this topic thoroughly using web search and web fetch tools. Your final response MUST be well-structured markdown with the following sections:

## {summary}
A concise 2-3 paragraph overview of the research findings.

## {findings}
- Bullet points of the most important discoveries
- Include specific data, statistics, or facts where available
- Note any emerging trends or patterns

## {details}
Provide deeper analysis organized into logical subsections. Use headers, lists, and tables as appropriate.

## {sources}
List the key sources you consulted with brief descriptions of what each provided.

## Important Guidelines
- Focus on accuracy and recency of information
- Cite specific sources when making claims
- Include relevant code examples, specifications, or technical details when applicable
- Structure your response for easy reading with proper markdown formatting
- Your entire final response will be saved as the research result, so make it comprehensive"""

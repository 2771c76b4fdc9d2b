"""
Prompt templates for LLM operations.

This module contains the two prompts the planner sends to the model:
- A fetch prompt: which read-only Todoist endpoints are needed as context
- A planning prompt: the ordered list of Todoist API calls to perform

Both prompts ask for a raw JSON array and nothing else.
"""

from datetime import datetime, timezone
from typing import Optional

# ============================================================================
# FETCH PROMPT
# ============================================================================

DETERMINE_FETCHES_PROMPT = """You are a smart assistant specialized in managing tasks with the Todoist API.

Your goal is to determine which official Todoist REST API GET endpoints must be called before generating API calls for the user's instruction.

Always refer to the official Todoist REST API documentation at https://developer.todoist.com/rest/v2/.
You must only use valid GET endpoints from the official API documentation.
Do NOT invent or assume any endpoints that do not exist there.

Return a JSON array of strings listing the endpoint paths (e.g., "/projects", "/tasks") required to fetch data before generating further API calls.

If no data needs to be fetched beforehand, return an empty array.

### Examples:

Instruction: "Update the task about the dentist appointment to tomorrow"
Response: ["/tasks"]

Instruction: "Add a task 'Buy milk' to the 'Groceries' project"
Response: ["/projects", "/sections"]

Instruction: "Move the task 'Buy milk' from 'Groceries' to 'Errands'"
Response: ["/projects", "/sections", "/tasks"]

Instruction: "Add a task to call mom"
Response: []

Now analyze this instruction:
\"\"\"{instruction}\"\"\"

Return ONLY the JSON array of endpoint paths."""


# ============================================================================
# PLANNING PROMPT
# ============================================================================

PARSE_TASK_PROMPT = """## TASK PLANNER ASSISTANT

You are an expert task planner that transforms user instructions into comprehensive, detailed JSON plans of Todoist API calls.
Break down any instruction into a hierarchical project structure with sections and tasks, capturing all relevant details, dependencies, and realistic scheduling.

**CURRENT SYSTEM TIME:**
- UTC Time: {utc_now}

---

## 1. DATA ACCESS RULES

- You have access to preparation data from Todoist API GET endpoints
- The data is divided into blocks, each headed "### <endpoint name>" and containing the JSON returned by that endpoint
- Use these lists to identify and match existing entities by name, content, or other relevant properties
- For update or delete actions: find the best matching existing object and use its real `id`
- When updating or deleting, always include the `id` in the `endpoint` path (e.g., "projects/2357772982", "tasks/984213456")
- Do not send IDs in the `body` of DELETE or special-action POSTs; IDs go in the URL path
- For POST requests that create entities: use the base endpoint (e.g., "projects", "tasks") and put all data in `body`
- Only create new entities when explicitly required and not found in the preparation data
- If an endpoint block is missing, treat it as an empty list

**Preparation Data:**
\"\"\"{preparation_data}\"\"\"

---

## 2. API COMPLIANCE RULES

Only output the fields listed below. Never include keys with null, empty string, or empty array values.

#### Tasks
- Create `POST tasks` / Update `POST tasks/{{id}}` body keys:
  content, description, project_id, section_id, parent_id, order, priority, labels, due_string, duration, duration_unit, assignee_id
- Close `POST tasks/{{id}}/close` and Reopen `POST tasks/{{id}}/reopen`: no body
- Delete `DELETE tasks/{{id}}`: no body

#### Projects
- Create `POST projects` / Update `POST projects/{{id}}` body keys: name, color, favorite, parent_id, order, view_style
- Delete `DELETE projects/{{id}}`: no body

#### Sections
- Create `POST sections` / Update `POST sections/{{id}}` body keys: name, project_id, order
- Delete `DELETE sections/{{id}}`: no body

#### Labels
- Create `POST labels` / Update `POST labels/{{id}}` body keys: name, color, order, favorite
- Delete `DELETE labels/{{id}}`: no body

Never use `due` as an object. Scheduling uses the single flat field `due_string`.

---

## 3. LANGUAGE AND TIME RULES

- Detect the language of the user instruction and keep all user-visible content (task content, descriptions, project, section and label names) in that language
- `due_string` must always be natural English (e.g., "tomorrow", "every Monday at 19:00", "in 2 hours")
- Only include a time in `due_string` if the user explicitly mentioned one
- Do not output absolute date fields such as `due_date` or `due_datetime`

---

## 4. PROJECT STRUCTURE RULES

- Create a project only if the result includes more than one task
- For a single task, create the task directly without a project or section
- Only include `project_id` if the user explicitly refers to a project or the context makes it clear
- Always include a priority (1=normal, 2=high, 3=higher, 4=urgent) and a description for complex tasks

---

## 5. OUTPUT REQUIREMENTS

Output a valid JSON array of Todoist API call objects, in the order they must run. Each object must include:
- `id`: descriptive identifier (e.g., "project1", "task1")
- `endpoint`: tasks, projects, sections, labels, or their path with an ID
- `method`: HTTP method (GET, POST, PUT, PATCH, DELETE)
- `body`: JSON payload with allowed fields only (use {{}} when there is none)
- `depends_on`: optional id or list of ids of earlier objects

Reference the result of an earlier object with placeholders like `{{project1.id}}` or `{{section2.id}}`.
An object may only reference objects that appear before it in the array.

No explanations or markdown. The output must start with `[` and end with `]`.

---

**User instruction:**
\"\"\"{instruction}\"\"\""""


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def build_fetches_prompt(instruction: str) -> str:
    """Build the prompt asking which GET endpoints are needed."""
    return DETERMINE_FETCHES_PROMPT.format(instruction=instruction)


def build_parse_task_prompt(
    instruction: str,
    preparation_data: str,
    now: Optional[datetime] = None,
) -> str:
    """
    Build the planning prompt.

    Args:
        instruction: The user's natural-language instruction
        preparation_data: Labeled endpoint payloads from the prefetch step
        now: Current time (defaults to datetime.now(timezone.utc))

    Returns:
        Prompt text for the model
    """
    now = now or datetime.now(timezone.utc)
    return PARSE_TASK_PROMPT.format(
        utc_now=now.astimezone(timezone.utc).isoformat(timespec="seconds"),
        preparation_data=preparation_data,
        instruction=instruction,
    )

"""
Strata prompt templates for decomposing goals into phased plans.
"""

from .models import Difficulty, Language, TaskType

LANGUAGE_INSTRUCTIONS = {
    Language.EN: "OUTPUT LANGUAGE: ENGLISH.",
    Language.ZH: (
        "OUTPUT LANGUAGE: CHINESE (Simplified). All titles, descriptions, "
        "summaries, and quotes MUST be in Chinese."
    ),
}

# JSON layout the model must follow; embedded in every prompt.
OUTPUT_SCHEMA = """{{
  "goal": "<the goal title>",
  "summary": "<executive summary>",
  "motivationalQuote": "<motivational quote>",
  "phases": [
    {{
      "id": "<phase-id>",
      "title": "<phase title>",
      "description": "<phase description>",
      "duration": "<duration string>",
      "isRecurring": <true|false>,
      "frequency": "<optional frequency string>",
      "steps": [
        {{
          "id": "<step-id>",
          "title": "<task title>",
          "description": "<instruction>",
          "estimatedDuration": "<e.g. '45 mins', '1 Day'>",
          "difficulty": "Easy" | "Medium" | "Hard",
          "type": "Research" | "Action" | "Milestone" | "Preparation",
          "isBreakable": <true|false>
        }}
      ]
    }}
  ]
}}"""

# Structured-output schema for providers that enforce one (Gemini).
_STEP_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING", "description": "step-id"},
        "title": {"type": "STRING", "description": "Task title"},
        "description": {"type": "STRING", "description": "Instruction"},
        "estimatedDuration": {
            "type": "STRING",
            "description": "Duration e.g. '45 mins', '1 Day'",
        },
        "difficulty": {"type": "STRING", "enum": [d.value for d in Difficulty]},
        "type": {"type": "STRING", "enum": [t.value for t in TaskType]},
        "isBreakable": {"type": "BOOLEAN", "description": "True if task > 1 hour"},
    },
    "required": [
        "id", "title", "description", "estimatedDuration", "difficulty", "type", "isBreakable",
    ],
}

_PHASE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING", "description": "phase-id"},
        "title": {"type": "STRING", "description": "Phase title"},
        "description": {"type": "STRING", "description": "Phase description"},
        "duration": {"type": "STRING", "description": "Duration string"},
        "isRecurring": {"type": "BOOLEAN", "description": "Is recurring?"},
        "frequency": {"type": "STRING", "description": "Frequency string"},
        "steps": {"type": "ARRAY", "items": _STEP_SCHEMA},
    },
    "required": ["id", "title", "description", "duration", "isRecurring", "steps"],
}

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "goal": {"type": "STRING", "description": "The goal title"},
        "summary": {"type": "STRING", "description": "Executive summary"},
        "motivationalQuote": {"type": "STRING", "description": "Motivational quote"},
        "phases": {"type": "ARRAY", "items": _PHASE_SCHEMA},
    },
    "required": ["goal", "summary", "motivationalQuote", "phases"],
}

# Root goal: strategic, phased, day/week sized units
STRATEGIC_PROMPT = """
Act as an expert strategic planner.
User Goal: "{goal}"
{language_instruction}

Your Objective: Create a High-Level Roadmap.

STRATEGY:
1. **Hierarchy**:
   - Level 1: **Phases** (time-bound stages e.g. "Phase 1: Preparation", "Phase 2: Execution"
     OR recurring cycles e.g. "Weekly Routine").
   - Level 2: **Steps** MUST be **Days**, **Weeks**, or **Sessions**
     (e.g. "Day 1: Setup Environment", "Week 2: Advanced Topics", "Monday: Chest Day").

2. **Granularity Rules (CRITICAL)**:
   - **FORBIDDEN**: Do NOT list granular hourly tasks (e.g. "Read page 5", "Install software").
   - The smallest unit at this root level must be a **DAY** or a **MAJOR SESSION**.
   - 'isBreakable' MUST be **true** for ALL steps at this level.

3. **Recurring/Cycle**:
   - If the goal implies a repeating routine (e.g. "Lose weight", "Learn Piano"),
     create a Phase with 'isRecurring': true.
   - The steps inside should be the repeating units (e.g. "Morning Practice", "Monday").

Data Rules:
- 'estimatedDuration': "1 Day", "3 Days", "1 Week", "2 Hours Session" (a composite block of time).
- 'isBreakable': true.

Return ONLY raw JSON following this schema (no markdown, no explanatory text):

""" + OUTPUT_SCHEMA + "\n"

# Sub-task: tactical, hourly, leaves of the tree
TACTICAL_PROMPT = """
Act as an Execution Specialist.
Context: The user needs to complete a specific sub-unit of a larger goal: "{goal}".
{language_instruction}

Your Objective: Break this specific "Day" or "Session" into immediately executable,
atomic hourly steps.

STRATEGY:
1. **NO PHASES**: Create a single flow of execution.
2. **HOURLY LIMIT**: Every single step MUST be small enough to complete in **1 HOUR or less**.
   - If a step takes 2 hours, split it: "Part 1", "Part 2".
3. **ATOMICITY**: 'isBreakable': false (these are the leaves of the tree).

Structure:
- Return a single Phase named "Execution Protocol".

Return ONLY raw JSON following this schema (no markdown, no explanatory text):

""" + OUTPUT_SCHEMA + "\n"


def build_prompt(goal: str, language: Language, is_sub_task: bool = False) -> str:
    """Select the strategic or tactical template and fill it in."""
    template = TACTICAL_PROMPT if is_sub_task else STRATEGIC_PROMPT
    return template.format(
        goal=goal, language_instruction=LANGUAGE_INSTRUCTIONS[Language(language)]
    )

"""Prompt templates for summarizing a cluster of statements into one abstract statement."""

JTBD_ABSTRACTION_PROMPT = """I have a cluster of similar Jobs-to-be-Done (JTBD) statements from customer feedback.
Create a higher-level abstract JTBD that encompasses all of these more specific JTBDs.

Each JTBD follows the format: "When [situation], I want to [motivation], so I can [expected outcome]"

SPECIFIC JTBDs:
{statements}

Requirements:
- Write one abstract JTBD statement covering all of the statements above, using the same "When... I want to... so I can..." format
- Extract its situation, motivation and outcome components
- Assign a priority score from 1 (lowest) to 10 (highest)
- Briefly explain how the abstraction relates to the specific JTBDs

{format_instructions}

Output the result in the following JSON format:
{{
  "statement": "When ..., I want to ..., so I can ...",
  "situation": "The situation component",
  "motivation": "The motivation component",
  "outcome": "The outcome component",
  "priority": 7,
  "explanation": "How this abstraction relates to the specific JTBDs"
}}

Provide only the JSON output, no additional text."""


SCENARIO_ABSTRACTION_PROMPT = """I have a cluster of similar user scenarios from customer feedback.
Create a higher-level abstract scenario that encompasses all of these more specific scenarios.

SPECIFIC SCENARIOS:
{statements}

Requirements:
- Write one abstract scenario statement covering all of the scenarios above
- Extract its situation, motivation and outcome components where applicable
- Assign a priority score from 1 (lowest) to 10 (highest)
- Briefly explain how the abstraction relates to the specific scenarios

{format_instructions}

Output the result in the following JSON format:
{{
  "statement": "The full abstract scenario statement",
  "situation": "The situation component, if applicable",
  "motivation": "The motivation component, if applicable",
  "outcome": "The outcome component, if applicable",
  "priority": 5,
  "explanation": "How this abstraction relates to the specific scenarios"
}}

Provide only the JSON output, no additional text."""


ABSTRACTION_PROMPTS = {
    "jtbd": JTBD_ABSTRACTION_PROMPT,
    "scenario": SCENARIO_ABSTRACTION_PROMPT,
}

"""Default prompts for every workflow.

Each prompt is a plain ``str.format`` template; literal braces are doubled.
The gateway falls back to these when a request does not bring its own.
"""

from __future__ import annotations

# ────────────────────────────────────────────────────────────────────
# Chain – four-step data transformation
# ────────────────────────────────────────────────────────────────────

CHAIN_DATA_STEPS: tuple[str, ...] = (
    """\
Extract only the numerical values and their associated metrics from the text.
Format each as 'value: metric' on a new line.
Example format:
92: customer satisfaction
45%: revenue growth

{input}""",
    """\
Convert all numerical values to percentages where possible.
If not a percentage or points, convert to decimal (e.g., 92 points -> 92%).
Keep one number per line.
Example format:
92%: customer satisfaction
45%: revenue growth

{input}""",
    """\
Sort all lines in descending order by numerical value.
Keep the format 'value: metric' on each line.
Example:
92%: customer satisfaction
87%: employee satisfaction

{input}""",
    """\
Format the sorted data as a markdown table with columns:
| Metric | Value |
|:--|--:|
| Customer Satisfaction | 92% |

{input}""",
)

# ────────────────────────────────────────────────────────────────────
# Parallel – stakeholder impact analysis
# ────────────────────────────────────────────────────────────────────

PARALLEL_IMPACT = """\
Analyze how market changes will impact this stakeholder group.
Provide specific impacts and recommended actions.
Format with clear sections and priorities.

{input}"""

# ────────────────────────────────────────────────────────────────────
# Routing – support ticket triage
# ────────────────────────────────────────────────────────────────────

ROUTING_CLASSIFY = """\
Analyze the input and select the most appropriate support team from these options: {options}
First explain your reasoning, then provide your selection in this JSON format:

{{
    "reasoning": "Brief explanation of why this ticket should be routed to a specific team.
                Consider key terms, user intent, and urgency level.",
    "selection": "The chosen team name"
}}

Input: {input}"""

ROUTING_HANDLE = """\
{route_prompt}
Input: {input}"""

SUPPORT_ROUTES: dict[str, str] = {
    "billing": """\
You are a billing support specialist. Follow these guidelines:
1. Always start with "Billing Support Response:"
2. First acknowledge the specific billing issue
3. Explain any charges or discrepancies clearly
4. List concrete next steps with timeline
5. End with payment options if relevant

Keep responses professional but friendly.""",
    "technical": """\
You are a technical support engineer. Follow these guidelines:
1. Always start with "Technical Support Response:"
2. List exact steps to resolve the issue
3. Include system requirements if relevant
4. Provide workarounds for common problems
5. End with escalation path if needed

Use clear, numbered steps and technical details.""",
    "account": """\
You are an account security specialist. Follow these guidelines:
1. Always start with "Account Support Response:"
2. Prioritize account security and verification
3. Provide clear steps for account recovery/changes
4. Include security tips and warnings
5. Set clear expectations for resolution time

Maintain a serious, security-focused tone.""",
    "product": """\
You are a product specialist. Follow these guidelines:
1. Always start with "Product Support Response:"
2. Focus on feature education and best practices
3. Include specific examples of usage
4. Link to relevant documentation sections
5. Suggest related features that might help

Be educational and encouraging in tone.""",
}

# ────────────────────────────────────────────────────────────────────
# Orchestrator-workers – content variations
# ────────────────────────────────────────────────────────────────────

ORCHESTRATOR_DECOMPOSE = """\
Analyze this task and break it down into 2-3 distinct approaches:

Task: {task}

Return your response in this JSON format:
{{
    "analysis": "Explain your understanding of the task and which variations would be valuable.
                Focus on how each approach serves different aspects of the task.",
    "tasks": [
        {{
            "type": "formal",
            "description": "Write a precise, technical version that emphasizes specifications"
        }},
        {{
            "type": "conversational",
            "description": "Write an engaging, friendly version that connects with readers"
        }}
    ]
}}"""

WORKER_TASK = """\
Generate content based on:
Task: {original_task}
Style: {task_type}
Guidelines: {task_description}"""

# ────────────────────────────────────────────────────────────────────
# Evaluator-optimizer – code generation with review
# ────────────────────────────────────────────────────────────────────

GENERATOR_TASK = """\
Your goal is to complete the task based on the input. If there is feedback
from your previous generations, you should reflect on it to improve your solution.

Respond with a JSON object of this shape:
{{"thoughts": "Brief description of your approach", "response": "Your solution"}}

{context}
Task: {task}"""

EVALUATOR_TASK = """\
Evaluate this implementation for correctness, time complexity, and best practices.
Ensure the code has proper documentation.

Respond with EXACTLY this JSON format on a single line:
{{"evaluation": "PASS, NEEDS_IMPROVEMENT, or FAIL", "feedback": "Your feedback here"}}

The evaluation field must be one of: "PASS", "NEEDS_IMPROVEMENT", "FAIL".
Use "PASS" only if all criteria are met with no improvements needed.

Original task: {task}
Content to evaluate: {content}"""

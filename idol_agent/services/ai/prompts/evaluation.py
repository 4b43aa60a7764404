"""Rubric prompt for hackathon project evaluation.
- output format purposefully has {{ and }} characters because they are escaped for str.format
- project fields are inserted verbatim; str.format does not re-interpret braces in inserted values
"""

EVALUATION_USER_PROMPT_TEMPLATE = """You are an expert evaluator for AI agent projects in a hackathon. Evaluate this project and provide a score from 0-100.

Project Details:
- Name: {name}
- Description: {description}
- GitHub URL: {github_url}

Evaluation Criteria:
1. Innovation (30 points): Is this a novel approach? Does it solve a real problem creatively?
2. Technical Viability (30 points): Is the implementation feasible? Does it show technical competence?
3. Potential Impact (20 points): Could this make a meaningful difference in the ecosystem?
4. Presentation Clarity (20 points): Is the project well-documented and clearly explained?

Respond ONLY with valid JSON in this exact format:
{{
  "score": <number 0-100>,
  "reasoning": "<brief explanation>",
  "breakdown": {{
    "innovation": <0-30>,
    "viability": <0-30>,
    "impact": <0-20>,
    "clarity": <0-20>
  }}
}}"""


def format_evaluation_prompt(name: str, description: str, github_url: str) -> str:
    return EVALUATION_USER_PROMPT_TEMPLATE.format(
        name=name, description=description, github_url=github_url
    )

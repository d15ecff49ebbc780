"""Prompt builder for plan generation."""

from typing import Optional

from ..models.plan import Timeframe, bundle_labels, expected_bundle_count


# Recorded on every audit row; bump when the rendered instructions change.
PROMPT_VERSION = "plan_v1_2026-01-22"

OUTPUT_EXAMPLE = (
    '{{ "timeframe": "{timeframe}", "deliverables": [ {{ "title": "Example", "description": "..." }} ], '
    '"bundles": [ {{ "label": "Person 1", "bundle_title": "Example", "bundle_summary": "...", '
    '"tasks": [ {{ "title": "Do X", "details": "Done when ...", "category":"Research", "size":"S", '
    '"effort_points": 1 }} ] }} ], "assumptions": [] }}'
)


def build_prompt(
    title: str,
    description: Optional[str],
    timeframe: str,
    assignment_details: str,
    group_size: int,
) -> str:
    """
    Render the instruction set for the generation backend.

    Pure and deterministic: the same inputs always produce the same text.
    """
    timeframe = Timeframe(timeframe).value
    n = expected_bundle_count(group_size)
    labels = ", ".join(bundle_labels(n))
    review_requirement = (
        "For 'long' timeframe include at least one Review task per bundle."
        if timeframe == Timeframe.LONG.value
        else ""
    )

    lines = [
        "You are an assistant that MUST produce a single JSON object and nothing else. "
        "The JSON must conform exactly to the PlanV1 schema and the following constraints. "
        "Do not include any explanatory text, quotes, or commentary. Output only the JSON.",
        "Schema: PlanV1 with properties: timeframe, deliverables[], bundles[], assumptions[].",
        f"Produce EXACTLY {n} bundles. Bundle labels MUST be exactly: {labels}.",
        "For each bundle include bundle_title, optional bundle_summary, and tasks[].",
        "Do NOT enforce strict task counts; instead balance total effort_points across bundles "
        f"(difference between highest and lowest bundle total <=1 when feasible). {review_requirement}".rstrip(),
        "Each task MUST include title, details (with a clear done condition), category (one of allowed), "
        "size (S/M/L), and effort_points (1/2/3) where S->1, M->2, L->3.",
        "Deliverables MUST describe the tangible final artifacts (compiled report, slide deck, code repo, "
        "bibliography, etc.) that the assignment expects for submission.",
        "Do NOT list process steps or work-in-progress plans as deliverables.",
        "Each deliverable must tie back to the assignment_details and timeframe provided.",
        "Bundles should be skill-themed (1-2 primary categories) and avoid concentrating all similar "
        "categories in a single bundle unless the assignment requires it.",
        "Use title and description as context; assignment_details is authoritative for task content.",
        "Do NOT include any questions in the output.",
        "",
        f"Project title: {title}" if title else "",
        f"Project description: {description}" if description else "",
        "---",
        "Assignment details (authoritative):",
        assignment_details,
        "",
        "Output example shape (for guidance, do not output this example):",
        OUTPUT_EXAMPLE.format(timeframe=timeframe),
        "",
        "Return the JSON now.",
    ]
    return "\n".join(line for line in lines if line)

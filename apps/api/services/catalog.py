"""Static plan table and prompt templates."""

from typing import Dict, Optional, TypedDict


class CreditPlan(TypedDict):
    credits: int
    amount: int  # whole USD


CREDIT_PLANS: Dict[str, CreditPlan] = {
    "basic": {"credits": 100, "amount": 5},
    "pro": {"credits": 400, "amount": 19},
    "enterprise": {"credits": 1000, "amount": 49},
}


def get_credit_plan(plan_id: Optional[str]) -> Optional[CreditPlan]:
    return CREDIT_PLANS.get((plan_id or "").strip().lower())


ENHANCE_SYSTEM_PROMPT = """
You are a prompt enhancement specialist. Take the user's website request and expand it into
a detailed, comprehensive prompt that will help create the best possible website.

Enhance this prompt by:
1. Adding specific design details (layout, color scheme, typography)
2. Specifying key sections and features
3. Describing the user experience and interactions
4. Including modern web design best practices
5. Mentioning responsive design requirements
6. Adding any missing but important elements

Return ONLY the enhanced prompt, nothing else. Make it detailed but concise (2-3 paragraphs max).
""".strip()


GENERATE_SYSTEM_PROMPT = """
You are an expert web developer. Create a complete, production-ready, single-page website
based on the user's request.

CRITICAL REQUIREMENTS:
- Output valid HTML ONLY, as one complete self-contained document.
- Use Tailwind CSS for ALL styling (include <script src="https://cdn.tailwindcss.com"></script> in <head>).
- Use Tailwind utility classes extensively for styling, animations, and responsiveness.
- Make it fully functional and interactive with JavaScript inside a <script> tag before </body>.
- Use modern, beautiful design with great UX using Tailwind classes.
- Make it responsive using Tailwind responsive classes (sm:, md:, lg:, xl:).
- Use placeholder images from https://placehold.co/600x400 where needed.
- Include all necessary meta tags.

Do NOT include markdown, explanations, notes, or code fences.
The output must be ready to render directly in a browser.
""".strip()

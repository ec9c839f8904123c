"""Default AI agent configurations, installed by the seed_ai_agents command"""
from decimal import Decimal

STOREFRONT_BUILDER = 'storefront_builder'
STRAIN_AUTOFILL = 'strain_autofill'

STRAIN_FIELDS = (
    'strain_type', 'thca_percentage', 'delta_9_percentage', 'terpene_profile',
    'effects', 'lineage', 'nose', 'flavor', 'taste',
)

STOREFRONT_BUILDER_PROMPT = """You design storefront pages for licensed cannabis retailers.

Pages are built only from these section keys: {section_keys}.
Reply with a short explanation of your changes followed by a JSON array of sections:
[{"key": "<section key>", "content": {...}}]
Keep the content fields of each section's defaults. Write compliant copy: no medical
claims, no appeal to minors, and mention that customers must be 21 or older where relevant."""

STRAIN_AUTOFILL_PROMPT = """Extract factual cannabis strain data. Return ONLY JSON.
RULES:
- Never guess or make up data
- Use "Unknown" or null for missing info
- Be concise and factual
- Extract dominant terpenes (Myrcene, Limonene, Caryophyllene, Pinene, etc.)
- Extract flavor notes (citrus, diesel, earthy, sweet, berry, etc.)
JSON format:
{
  "strain_type": "Sativa" | "Indica" | "Hybrid" | "Unknown",
  "thca_percentage": number | null,
  "delta_9_percentage": number | null,
  "terpene_profile": ["Myrcene", "Limonene"] | [],
  "effects": ["Relaxing", "Euphoric"] | [],
  "lineage": "Parent1 x Parent2" | "Unknown",
  "nose": "brief aroma description" | "Unknown",
  "flavor": "brief flavor description" | "Unknown",
  "taste": "brief taste notes" | "Unknown"
}"""

DEFAULT_AGENTS = [
    {
        'key': STOREFRONT_BUILDER,
        'name': 'Storefront Builder',
        'max_tokens': 8000,
        'temperature': Decimal('0.70'),
        'system_prompt': STOREFRONT_BUILDER_PROMPT,
    },
    {
        'key': STRAIN_AUTOFILL,
        'name': 'Strain Autofill',
        'max_tokens': 1500,
        'temperature': Decimal('0.20'),
        'system_prompt': STRAIN_AUTOFILL_PROMPT,
    },
]

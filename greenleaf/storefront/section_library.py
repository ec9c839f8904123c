"""
Pre-built storefront sections vendors can place on their pages.

Each entry gives the section's key, display name, category, the page types it
may appear on ('global' sections belong to the site chrome) and the content a
new instance starts with.
"""
import copy
import uuid

SECTION_LIBRARY = [
    {
        'key': 'hero',
        'name': 'Hero Banner',
        'description': 'Large header with headline, subheadline and call-to-action buttons',
        'category': 'hero',
        'page_types': ['home', 'shop', 'about', 'contact'],
        'default_content': {
            'headline': 'Your Headline Here',
            'subheadline': 'A compelling subheadline that describes your value proposition',
            'cta_primary': {'text': 'Shop Now', 'link': '/shop'},
            'cta_secondary': {'text': 'Learn More', 'link': '/about'},
            'background_color': '#000000',
            'overlay_opacity': 0.6,
            'text_alignment': 'center',
        },
    },
    {
        'key': 'process',
        'name': 'Process Timeline',
        'description': 'Your process or workflow as visual steps',
        'category': 'features',
        'page_types': ['home', 'shop', 'about'],
        'default_content': {
            'headline': 'How It Works',
            'subheadline': 'Simple, fast, reliable',
            'background_color': '#0a0a0a',
            'steps': [
                {'title': 'Browse', 'description': 'Explore our lab-tested menu'},
                {'title': 'Order', 'description': 'Reserve online for pickup or delivery'},
                {'title': 'Verify', 'description': 'Show a valid ID at pickup'},
                {'title': 'Enjoy', 'description': 'Responsibly, and come back soon'},
            ],
        },
    },
    {
        'key': 'about_story',
        'name': 'Brand Story',
        'description': 'Your brand story with rich text and an image',
        'category': 'content',
        'page_types': ['home', 'shop', 'about'],
        'default_content': {
            'headline': 'Our Story',
            'paragraphs': [
                'We started with a simple mission: bring the best craft flower to our community.',
                'Today we work with small growers who share our standards for quality and consistency.',
                'Every product on our shelves is hand-selected and lab-tested.',
            ],
            'background_color': '#000000',
            'image_url': None,
        },
    },
    {
        'key': 'differentiators',
        'name': 'Key Features',
        'description': 'What makes you different, as icon cards',
        'category': 'features',
        'page_types': ['home', 'shop', 'about'],
        'default_content': {
            'headline': 'Why Choose Us',
            'subheadline': 'The difference is in the details',
            'background_color': '#0a0a0a',
            'features': [
                {'title': 'Lab Tested', 'description': 'Third-party testing on every batch'},
                {'title': 'Craft Growers', 'description': 'Small-batch cultivation partners'},
                {'title': 'Fresh Inventory', 'description': 'Restocked weekly'},
                {'title': 'Knowledgeable Staff', 'description': 'Ask us anything about strains and terpenes'},
            ],
        },
    },
    {
        'key': 'stats',
        'name': 'Statistics',
        'description': 'Headline numbers with counters',
        'category': 'social',
        'page_types': ['home', 'shop', 'about'],
        'default_content': {
            'headline': 'By The Numbers',
            'background_color': '#000000',
            'stats': [
                {'number': '15K+', 'label': 'Happy Customers'},
                {'number': '100%', 'label': 'Lab Tested'},
                {'number': '50+', 'label': 'Strains'},
                {'number': '<48h', 'label': 'Delivery'},
            ],
        },
    },
    {
        'key': 'featured_products',
        'name': 'Featured Products',
        'description': 'A row of products pulled from the live catalog',
        'category': 'content',
        'page_types': ['home', 'shop'],
        'default_content': {
            'headline': 'Featured',
            'category': None,
            'limit': 8,
            'show_pricing_tiers': True,
        },
    },
    {
        'key': 'reviews',
        'name': 'Customer Reviews',
        'description': 'Customer testimonials and ratings',
        'category': 'social',
        'page_types': ['home'],
        'default_content': {
            'headline': 'What Customers Say',
            'subheadline': 'Real reviews from real customers',
            'background_color': '#0a0a0a',
            'reviews': [
                {'name': 'Sarah M.', 'rating': 5, 'quote': 'The quality is exceptional.', 'product': 'Blue Dream'},
                {'name': 'Michael R.', 'rating': 5, 'quote': 'Clean, consistent, reliable.', 'product': 'OG Kush'},
            ],
        },
    },
    {
        'key': 'faq',
        'name': 'FAQ',
        'description': 'Frequently asked questions with expandable answers',
        'category': 'content',
        'page_types': ['home', 'faq'],
        'default_content': {
            'headline': 'Frequently Asked Questions',
            'subheadline': 'Everything you need to know',
            'background_color': '#000000',
            'questions': [
                {'question': 'Do I need an ID?', 'answer': 'Yes. A valid government ID showing you are 21 or older is required.'},
                {'question': 'Are your products lab tested?', 'answer': 'Every product is third-party tested for potency and purity.'},
                {'question': 'Can I order ahead?', 'answer': 'Yes. Order online and pick up in store.'},
            ],
        },
    },
    {
        'key': 'contact',
        'name': 'Contact & Hours',
        'description': 'Address, phone, email and opening hours',
        'category': 'content',
        'page_types': ['home', 'contact', 'about'],
        'default_content': {
            'headline': 'Visit Us',
            'show_map': True,
            'show_hours': True,
            'hours': [
                {'days': 'Mon - Sat', 'hours': '10am - 9pm'},
                {'days': 'Sun', 'hours': '11am - 7pm'},
            ],
        },
    },
    {
        'key': 'cta',
        'name': 'Call to Action',
        'description': 'A closing section that drives conversions',
        'category': 'cta',
        'page_types': ['home', 'shop', 'about', 'contact'],
        'default_content': {
            'headline': 'Ready to Get Started?',
            'subheadline': 'Join thousands of satisfied customers',
            'background_color': '#000000',
            'cta_button': {'text': 'Shop Now', 'link': '/shop'},
            'style': 'centered',
        },
    },
    {
        'key': 'product_grid',
        'name': 'Product Grid Header',
        'description': 'Header shown above product listings',
        'category': 'content',
        'page_types': ['shop'],
        'default_content': {
            'headline': 'Shop All Products',
            'subheadline': 'Browse our complete collection',
            'show_filters': True,
            'columns': 3,
        },
    },
    {
        'key': 'shop_config',
        'name': 'Shop Layout Settings',
        'description': 'Product grid, card and filter options',
        'category': 'settings',
        'page_types': ['shop'],
        'default_content': {
            'grid_columns': 3,
            'grid_columns_mobile': 2,
            'image_aspect': 'square',
            'show_stock_badge': True,
            'show_pricing_tiers': True,
            'show_product_fields': True,
            'show_categories': True,
            'show_location_filter': True,
            'show_sort': True,
        },
    },
    {
        'key': 'footer',
        'name': 'Footer',
        'description': 'Site footer with links, social and contact info',
        'category': 'content',
        'page_types': ['global'],
        'default_content': {
            'tagline': 'Your tagline here',
            'show_social': True,
            'show_links': True,
            'copyright_text': 'All rights reserved.',
        },
    },
]

SECTIONS_BY_KEY = {section['key']: section for section in SECTION_LIBRARY}

# Sections a new page of each type starts with
DEFAULT_PAGE_SECTIONS = {
    'home': ['hero', 'featured_products', 'differentiators', 'reviews', 'cta'],
    'shop': ['product_grid', 'shop_config'],
    'about': ['hero', 'about_story', 'stats', 'cta'],
    'contact': ['hero', 'contact'],
    'faq': ['faq', 'cta'],
    'custom': ['hero'],
}


def get_section(key):
    return SECTIONS_BY_KEY.get(key)


def sections_for_page_type(page_type):
    """Library entries that may be placed on a page of this type"""
    return [s for s in SECTION_LIBRARY if page_type in s['page_types'] or 'all' in s['page_types']]


def new_section(key, content=None):
    """A page section instance: library defaults overlaid with the given content"""
    section = get_section(key)
    if section is None:
        raise ValueError(f'Unknown section: {key}')
    merged = copy.deepcopy(section['default_content'])
    if content:
        merged.update(content)
    return {'key': key, 'id': uuid.uuid4().hex[:12], 'content': merged}


def build_default_sections(page_type):
    return [new_section(key) for key in DEFAULT_PAGE_SECTIONS.get(page_type, DEFAULT_PAGE_SECTIONS['custom'])]


def normalize_sections(raw_sections):
    """
    Validate a list of sections coming from a client or from the AI.

    Each item needs a known ``key``; ``content`` is merged over the defaults and
    a missing ``id`` is generated. Raises ValueError on anything else.
    """
    if not isinstance(raw_sections, list):
        raise ValueError('sections must be a list')
    sections = []
    for index, raw in enumerate(raw_sections):
        if not isinstance(raw, dict) or not raw.get('key'):
            raise ValueError(f'Section {index} needs a key')
        content = raw.get('content') or {}
        if not isinstance(content, dict):
            raise ValueError(f'Section {index} content must be an object')
        section = new_section(raw['key'], content)
        if raw.get('id'):
            section['id'] = str(raw['id'])
        sections.append(section)
    return sections

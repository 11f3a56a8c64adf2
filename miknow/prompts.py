"""Prompt templates for the note extractors."""

MARKDOWN_GUIDE = """- **Bold** and *italic* text
- Lists and tables
- Code blocks with syntax highlighting
- LaTeX for mathematical formulas (using $$ for display math and $ for inline math)"""

ANALYSIS_SYSTEM_PROMPT = "You are an AI assistant specialized in analyzing notes. Always respond with valid JSON."

ANALYSIS_PROMPT = """Analyze the following note content and provide insights.
Return your response in the following JSON format:
{{
  "summary": "A concise summary of the note",
  "keyThemes": ["theme1", "theme2", "theme3"],
  "suggestedLinks": ["link1", "link2", "link3"],
  "knowledgeGaps": ["gap1", "gap2", "gap3"]
}}

Note content:
{content}"""

LINKS_SYSTEM_PROMPT = (
    "You are an AI assistant specialized in suggesting links between notes. "
    "Always respond with valid JSON."
)

LINKS_PROMPT = """Given the following note content and existing notes, suggest potential links.
Return your response as a JSON array of objects with the following structure:
[
  {{
    "title": "Note Title",
    "relevance": 0.85,
    "reason": "Reason for the link"
  }}
]

Note content:
{content}

Existing notes:
{existing_notes}"""

GENERATION_SYSTEM_PROMPT = (
    "You are a helpful AI assistant specialized in generating notes. "
    "Use Markdown formatting and LaTeX for mathematical expressions where appropriate."
)

GENERATION_PROMPT = """Write a note about: {topic}

You can use Markdown formatting in your note, including:
{markdown_guide}

Context from related notes:
{context}"""

QA_SYSTEM_PROMPT = (
    "You are a helpful AI assistant specialized in answering questions based on a knowledge base. "
    "Use Markdown formatting and LaTeX for mathematical expressions where appropriate."
)

QA_PROMPT = """Answer the following question based on the provided vault content.

You can use Markdown formatting in your answer, including:
{markdown_guide}

Question: {question}

Vault Content:
{vault_content}"""

from langchain_core.prompts import PromptTemplate

SYSTEM_BASE = """You are an expert university-level teaching assistant."""

SUMMARY_SECTIONS = (
    "TITLE",
    "OVERVIEW",
    "KEY_CONCEPTS",
    "DEFINITIONS",
    "DETAILED_EXPLANATION",
    "EXAM_POINTS",
    "FURTHER_READING",
)

SUMMARY_TEMPLATE = PromptTemplate(
    input_variables=["content"],
    template=(
        SYSTEM_BASE + "\n"
        "Read the lecture content below and produce a detailed, well-structured summary.\n\n"
        "Use EXACTLY these section markers on their own line. Start each section on a new line.\n"
        "Write in full sentences. Do not skip any section.\n\n"
        "[TITLE]\n"
        "Write a short, descriptive title for this lecture.\n\n"
        "[OVERVIEW]\n"
        "Write 4-5 sentences summarising what this lecture is about, its main goals and key arguments.\n\n"
        "[KEY_CONCEPTS]\n"
        'List at least 8 key concepts as bullet points starting with "- ".\n\n'
        "[DEFINITIONS]\n"
        'List at least 6 important terms as bullet points starting with "- Term: definition".\n\n'
        "[DETAILED_EXPLANATION]\n"
        "Write 3 to 5 paragraphs (separated by blank lines) that deeply explain the most important ideas.\n\n"
        "[EXAM_POINTS]\n"
        'List at least 8 exam-focused takeaways as bullet points starting with "- ".\n\n'
        "[FURTHER_READING]\n"
        'List 2-3 recommended resources as bullet points starting with "- ".\n\n'
        "--- LECTURE CONTENT ---\n"
        "{content}\n"
        "--- END ---\n"
    ),
)

QA_TEMPLATE = PromptTemplate(
    input_variables=["context", "question"],
    template=(
        "You are a helpful teaching assistant. A student is asking a question about\n"
        "their lecture. Answer using ONLY the lecture content provided below.\n\n"
        "Rules:\n"
        "- Be clear and concise.\n"
        "- If the answer is not in the provided content, say exactly:\n"
        '  "I couldn\'t find that in this lecture. Try asking about something else covered here."\n'
        "- Do NOT make up information beyond what is in the content.\n"
        "- Use bullet points or numbered lists when the answer has multiple parts.\n\n"
        "--- LECTURE CONTENT ---\n"
        "{context}\n"
        "--- END OF LECTURE CONTENT ---\n\n"
        "STUDENT QUESTION: {question}\n\n"
        "ANSWER:"
    ),
)

QUIZ_TEMPLATE = PromptTemplate(
    input_variables=["num_questions", "content"],
    template=(
        "You are an expert university professor creating a multiple-choice quiz.\n"
        "Based on the lecture content below, generate exactly {num_questions} quiz questions.\n\n"
        "STRICT FORMAT - follow this EXACTLY for each question:\n\n"
        "QUESTION 1\n"
        "<Write the question here>\n"
        "A) <Option A>\n"
        "B) <Option B>\n"
        "C) <Option C>\n"
        "D) <Option D>\n"
        "CORRECT: <A or B or C or D>\n"
        "EXPLANATION: <One sentence explaining why the answer is correct>\n\n"
        "QUESTION 2\n"
        "...and so on until QUESTION {num_questions}.\n\n"
        "Rules:\n"
        "- Questions must be based ONLY on the lecture content.\n"
        "- Each question must have exactly 4 options (A, B, C, D).\n"
        "- The CORRECT line must contain only a single letter: A, B, C, or D.\n"
        "- EXPLANATION must be one concise sentence.\n"
        "- Do NOT add any text outside this format.\n\n"
        "--- LECTURE CONTENT ---\n"
        "{content}\n"
        "--- END ---\n"
    ),
)

NO_GROUNDING_ANSWER = (
    "I couldn't find relevant content in this lecture to answer your question. "
    "Try rephrasing or ask about a different topic covered in the lecture."
)

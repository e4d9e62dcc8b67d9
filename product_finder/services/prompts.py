"""Prompts do fluxo de recomendação (product finder)."""

SYSTEM_PROMPT = (
    "You are a helpful shopping assistant for an online store. "
    "Recommend products ONLY from the list of matching products you are given. "
    "Explain briefly why each product fits the customer's request, mention the best match first, "
    "and never invent products, prices or features that are not in the list. "
    "If none of the listed products fits, say so honestly."
)

USER_MESSAGE_TEMPLATE = """Customer request:
{query}

Matching products (lower similarity value means a closer match):
{products_list}
Write a short recommendation for the customer based on these products."""

NO_RESULTS_MESSAGE = (
    "Sorry, I could not find any products matching your request. "
    "Try describing the product with different words."
)

IMAGE_DESCRIPTION_PROMPT = (
    "Describe the product shown in this image so it can be found in an online catalog. "
    "Mention the product type, brand if visible, color, material, shape and any notable features. "
    "Answer with a single concise paragraph and no preamble."
)


def format_products_list(results) -> str:
    """Lista numerada "1. Nome (Similarity: 0.23)" usada no prompt."""
    lines = []
    for index, result in enumerate(results, start=1):
        title = result.title or "Unknown product"
        lines.append(f"{index}. {title} (Similarity: {result.distance})")
    return "\n".join(lines) + "\n"

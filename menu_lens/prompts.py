"""Prompts for OpenAI models."""

SYSTEM_PROMPT = (
    "You read restaurant menus from photos for Korean travellers. "
    "You answer with raw JSON only."
)

MENU_PROMPT = """
Analyze this menu image.
Identify all the menu items, their descriptions (if available), and prices.

1) EXTRACT the original text for the menu item name.
2) TRANSLATE the description to KOREAN. If there is no description, create a short appetizing description in Korean based on the menu name.
3) IDENTIFY the price and the currency. Estimate the currency based on the language/location context if symbols are missing
   (e.g. Japanese text -> JPY, English/$ -> USD, European -> EUR).

Return the response ONLY as a valid JSON array of objects.

Each object must have the following structure:
{
  "name": "Original Menu Name (in original language)",
  "koreanName": "Menu Name translated to Korean",
  "description": "Appetizing description in Korean",
  "price": 15.50,
  "currency": "Currency Code (USD, EUR, JPY, KRW, etc.)"
}

If a price cannot be determined, use null for both price and currency.

⚠️ No markdown formatting (like ```json). Just the raw JSON array.
"""

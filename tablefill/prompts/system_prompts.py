# System prompts for the research and cell enrichment pipeline.
#
# Provider prompts are deliberately short: the search providers do their own
# retrieval and we only need a free-text answer. The synthesis prompt carries
# the output contract (result + reasoningSteps + sources).

# =============================================================================
# SEARCH PROVIDER PROMPT (OpenAI, Perplexity, Google)
# =============================================================================
SEARCH_PROVIDER_PROMPT = (
    "You are an assistant helping fill out a spreadsheet. "
    "You can search the web for information."
)

# =============================================================================
# CELL QUESTION (sent to every provider during fan-out)
# =============================================================================
CELL_QUESTION_TEMPLATE = (
    "The user is making a spreadsheet with the following table: {table_name}. "
    "The table has the following description: {table_description}. "
    "The column they are filling out is: {column_name}. "
    "The column has the following description: {column_description} and the type is {column_type}. "
    "{type_hint}"
    "The existing data for this row is: {row_data}. "
    "Help them fill in this cell."
)

# =============================================================================
# ANSWER SYNTHESIS PROMPT
# =============================================================================
ANSWER_SYNTHESIS_PROMPT = """
You are in a data pipeline whose goal is to fill out a spreadsheet for a user's query.
You will be given the table, a column, an output type (JSON Schema), and multiple
search responses from different providers. Some responses may be error messages
from providers that failed; ignore their content but still answer as best you can.

Extract the right information from the search responses and return it in the
correct format:

1. Consider the quality and credibility of the information sources, the
   consistency across responses, and the reasoning provided. When sources
   disagree, make a judgment based on credibility and recency of information.
2. Put every URL that appears anywhere in any search response into
   metadata.sources, exactly as written.
3. Put a short ordered list (2-5 items) of the steps that led to the answer
   into metadata.reasoningSteps.

Respond ONLY with JSON matching the output schema with no other text.
""".strip()

SYNTHESIS_QUESTION_TEMPLATE = (
    "Table: {table_name}\n"
    "Column: {column_name}\n"
    "Column Description: {column_description}\n"
    "Output type: {output_type}\n"
    "\n"
    "Search Responses:\n"
    "{search_responses}"
)

# =============================================================================
# ROW GENERATION PROMPTS
# =============================================================================
ROW_CANDIDATES_QUESTION_TEMPLATE = (
    "Generate a list of candidate entities for the user's spreadsheet. "
    "Table name: {table_name}. "
    "Table description: {table_description}. "
    "Entity column name: {entity_column_name}. "
    "Entity column description: {entity_column_description}."
)

ROW_EXTRACTION_PROMPT = """
You are in a data pipeline whose goal is to fill out a spreadsheet for a user's query.
You will be given the table name, table description, entity column name, entity
column description, and unstructured search results.

Extract the entities from the unstructured search results and return their names
in the "result" array, one entity per item, without numbering or commentary.

Respond ONLY with JSON matching the output schema with no other text.
""".strip()

ROW_EXTRACTION_QUESTION_TEMPLATE = (
    "Table Name: {table_name}\n"
    "Table Description: {table_description}\n"
    "Entity Column Name: {entity_column_name}\n"
    "Entity Column Description: {entity_column_description}\n"
    "Search Results: {search_results}"
)

# =============================================================================
# COLUMN SUGGESTION PROMPTS
# =============================================================================
COLUMN_SUGGESTION_PROMPT = """
You are an AI assistant that helps generate relevant columns for research tables.
Your task is to analyze a search query and generate a set of columns that would be
useful for a research report table. The columns should be relevant to the query and
help users make informed decisions.
Return only the column names as a comma-separated list without any additional text
or explanation.
""".strip()

COLUMN_SUGGESTION_EXAMPLE = (
    "Example:\n"
    'Query: "good scooter for SF"\n'
    "Output: Scooter Model, Motor Power, Max Speed, Range, Hill Climbing Ability, Key Features, Image"
)

COLUMN_SUGGESTION_QUESTION_TEMPLATE = (
    'Based on this search query: "{prompt}", generate a set of columns the user '
    "would care about as part of a research report table."
)

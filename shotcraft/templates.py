"""
Prompt text used across the compilation pipeline.

Every template is a plain `str.format` string; field names and values are
passed as keyword arguments.
"""

CHAIN_OF_THOUGHT_TEMPLATE = """Given the content of the "{input_field}" field, produce the "{output_field}" field. Follow this format:
---
{input_field}: the {input_field}
reasoning: think step by step, then answer
{output_field}: the {output_field}
---
"""

GENERIC_TEMPLATE = """Given the content of the "{input_field}" field, produce the "{output_field}" field. Follow this format:
---
{input_field}: the {input_field}
{output_field}: the {output_field}
---
"""

REASONING_REQUEST_TEMPLATE = """Write the reasoning that derives the "{output_field}" field from the "{input_field}" field. Reply with the reasoning only.
Here is an example:
---
question: How do I print "Hello, World" in Python?
answer: On Python 2.x use `print 'Hello, World'`; on Python 3.x use `print('Hello, World')`.
reasoning:
1. Python has two major versions, 2.x and 3.x. Without knowing the user's version, both should be covered.
2. In Python 2.x, `print 'Hello, World'` prints the text.
3. In Python 3.x, `print('Hello, World')` prints the text.
4. So on Python 2.x use `print 'Hello, World'`, and on Python 3.x use `print('Hello, World')`.
---
{input_field}: {input_value}
{output_field}: {output_value}
"""

GRADING_TEMPLATE = """Grade the reply below. "question" is the question that was asked, "answer" is the student's reply and "reference" is the expected answer. Score how closely "answer" matches "reference" on a scale of 1, 2, 3, 4, 5. Reply with the score only, without any explanation.
---
question: {question}
answer: {answer}
reference: {reference}
---
"""

CHAIN_OF_THOUGHT_EXEMPLAR = (
    '---\n{input_field}: {input_value}\nreasoning: {reasoning}\n'
    '{output_field}: {output_value}\n---\n'
)

GENERIC_EXEMPLAR = '---\n{input_field}: {input_value}\n{output_field}: {output_value}\n---\n'

QUESTION_SUFFIX = '\n{input_field}: {question}'

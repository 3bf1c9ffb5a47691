"""Turn processing helpers.

Everything that touches a generated turn between the model reply and the
stored session lives here: schema coercion, merging into map memory and the
history window handed back to the generator.
"""

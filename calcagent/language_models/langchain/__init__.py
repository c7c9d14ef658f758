"""LangChain interface to the language models of the agent.

The decision step talks to the language model through the LangChain
chat model interface (`BaseChatModel`), whose `bind_tools` method
declares the available tools to the model and whose `invoke` method
returns an `AIMessage`, possibly carrying tool calls. This package
creates the chat model objects from the settings, and provides an
offline scripted model for testing.
"""

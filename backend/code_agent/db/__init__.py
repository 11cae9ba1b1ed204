from code_agent.db.models import Base, Fragment, Message, MessageRole, MessageType, Project

__all__ = ["Base", "Fragment", "Message", "MessageRole", "MessageType", "Project"]

"""客户端状态：会话、全局消息、排盘报告、用户档案与主题。

每个持久化 store 对应一个命名空间，修改后立即整体写回。
"""

from qimen_core.stores.chat_store import ChatStore
from qimen_core.stores.conversation_store import ConversationStore
from qimen_core.stores.qimen_store import QimenStore
from qimen_core.stores.theme_store import ThemeStore
from qimen_core.stores.user_store import UserStore

__all__ = ["ChatStore", "ConversationStore", "QimenStore", "ThemeStore", "UserStore"]

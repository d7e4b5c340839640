"""
Streamlit Frontend for the Bill Assistant

A chat window with 小咩: type a bill in words ("打车花了25") or attach
receipt photos. Receipts are stored right away and filed as bills in the
background, so the reply never waits for extraction.

DESIGN PRINCIPLES:
1. One conversation per browser session
2. Replies stream in as the model produces them
3. Errors are shown as short, friendly messages
"""

import asyncio
from uuid import uuid4

import streamlit as st

from bill_assistant.config import validate_all_settings
from bill_assistant.models.chat import UserIdentity
from bill_assistant.models.files import FileUpload
from bill_assistant.orchestrator import AppComponents, create_app_components


# Page configuration
st.set_page_config(
    page_title="小咩记账",
    page_icon="🐑",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def iterate_async(agen):
    """Drive an async generator from Streamlit's synchronous script."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        while True:
            try:
                yield loop.run_until_complete(agen.__anext__())
            except StopAsyncIteration:
                break
    finally:
        loop.run_until_complete(agen.aclose())
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    try:
        components = create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        st.stop()
    run_async(components.categories.seed_system_categories())
    return components


def get_identity(owner_id: int) -> UserIdentity:
    if "conversation_id" not in st.session_state:
        st.session_state.conversation_id = uuid4().hex
    return UserIdentity(
        conversation_id=f"{owner_id}:{st.session_state.conversation_id}",
        owner_id=owner_id,
    )


def main():
    """Main application entry point."""
    components = get_components()

    # Sidebar navigation
    st.sidebar.title("🐑 小咩记账")
    st.sidebar.markdown("---")

    owner_id = int(st.sidebar.number_input("用户 ID", min_value=1, value=1, step=1))

    page = st.sidebar.radio(
        "导航",
        ["💬 聊天记账", "🔁 重新识别", "📊 我的账单", "🏷️ 分类管理"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **试试这样说：**
        - 昨天晚饭花了50
        - 今天发工资8000
        - 或者直接上传票据照片
        """
    )

    with st.sidebar.expander("连接状态"):
        render_connection_status()

    if page == "💬 聊天记账":
        render_chat_page(components, get_identity(owner_id))
    elif page == "🔁 重新识别":
        render_reprocess_page(components)
    elif page == "📊 我的账单":
        render_bills_page(components, owner_id)
    elif page == "🏷️ 分类管理":
        render_categories_page(components, owner_id)


def render_chat_page(components: AppComponents, identity: UserIdentity):
    """Render the chat page."""
    st.title("💬 和小咩聊聊")

    if "messages" not in st.session_state:
        st.session_state.messages = []

    for message in st.session_state.messages:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])

    uploaded_files = st.file_uploader(
        "附上票据（可多选）",
        accept_multiple_files=True,
        key=f"uploads_{len(st.session_state.messages)}",
    )

    text = st.chat_input("说点什么，或者直接发送票据")
    if text is None:
        return

    files = [
        FileUpload(filename=upload.name, content=upload.getvalue())
        for upload in uploaded_files or []
    ]

    user_line = text or ""
    if files:
        names = "、".join(upload.filename for upload in files)
        user_line = f"{user_line}\n\n📎 {names}".strip()
    st.session_state.messages.append({"role": "user", "content": user_line})
    with st.chat_message("user"):
        st.markdown(user_line)

    with st.chat_message("assistant"):
        reply = st.write_stream(
            iterate_async(components.chat.handle_chat_request(text, files, identity))
        )
    st.session_state.messages.append({"role": "assistant", "content": reply})

    if files:
        st.info("票据已收到，小咩会在后台把它记成账单 🐑")

    if st.button("🧹 清空对话"):
        run_async(components.context_store.clear(identity.conversation_id))
        st.session_state.messages = []
        st.rerun()


def render_reprocess_page(components: AppComponents):
    """Re-run extraction and filing for a stored file."""
    st.title("🔁 重新识别票据")
    st.markdown("输入已上传文件的 ID，小咩会重新识别并记账。")

    file_id = st.number_input("文件 ID", min_value=1, step=1)

    if st.button("开始识别", type="primary"):
        with st.spinner("识别中..."):
            draft = run_async(components.filing_flow.extract_and_file_bill(int(file_id)))

        if draft is None:
            st.error("没能从这个文件里识别出账单，请检查文件 ID 或稍后再试。")
            return

        st.success(f"已记账：{draft.name}")
        st.json(draft.model_dump(mode="json", by_alias=True))


def render_bills_page(components: AppComponents, owner_id: int):
    """Render the bills list page."""
    st.title("📊 我的账单")

    bills = run_async(components.bill_storage.list_bills(owner_id))
    if not bills:
        st.info("还没有账单。去聊天页说一笔，或者上传一张票据吧！")
        return

    categories = {
        category.id: category.name
        for category in run_async(components.categories.list_categories(owner_id))
    }
    st.dataframe(
        [
            {
                "日期": bill.issue_date.isoformat(),
                "名称": bill.name,
                "收支": "收入" if bill.direction.value == "income" else "支出",
                "金额": f"{bill.total_amount} {bill.currency_code.value}",
                "分类": categories.get(bill.category_id, "未分类"),
                "对方": bill.counterparty_name or "",
            }
            for bill in bills
        ],
        use_container_width=True,
    )


def render_categories_page(components: AppComponents, owner_id: int):
    """Manage private categories."""
    st.title("🏷️ 分类管理")
    service = components.categories

    with st.form("new_category", clear_on_submit=True):
        st.markdown("### 新建分类")
        name = st.text_input("名称")
        code = st.text_input("编码（可选）")
        description = st.text_input("描述（可选）")
        sort_order = st.number_input("排序", value=100, step=1)
        if st.form_submit_button("创建") and name:
            created = run_async(service.create_category(
                owner_id,
                name,
                code=code or None,
                description=description or None,
                sort_order=int(sort_order),
            ))
            if created is None:
                st.error("名称或编码已经存在啦")
            else:
                st.success(f"已创建：{created.name}")

    st.markdown("---")

    for category in run_async(service.list_categories(owner_id)):
        col1, col2, col3 = st.columns([3, 1, 1])
        label = f"**{category.name}**" + ("（系统）" if category.is_system else "")
        if not category.enabled:
            label += " · 已停用"
        col1.markdown(label)

        if category.is_system:
            continue

        toggle = "停用" if category.enabled else "启用"
        if col2.button(toggle, key=f"toggle_{category.id}"):
            run_async(service.set_enabled(category.id, owner_id, not category.enabled))
            st.rerun()
        if col3.button("删除", key=f"delete_{category.id}"):
            run_async(service.delete_category(category.id, owner_id))
            st.rerun()


def render_connection_status():
    """Show which backends are configured."""
    status = validate_all_settings()

    services = [
        ("Cloudinary (票据存储)", "cloudinary"),
        ("Google Sheets (账本)", "google_sheets"),
        ("Gemini (AI)", "gemini"),
        ("Redis (会话记忆)", "redis"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.warning(f"⚠️ {name} - {error}")


if __name__ == "__main__":
    main()

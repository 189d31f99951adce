"""Git treeish 链接核心逻辑（不依赖 Qt）"""

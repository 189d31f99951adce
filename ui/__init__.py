"""Git treeish 链接的 PyQt5 界面层"""

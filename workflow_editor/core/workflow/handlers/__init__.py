"""
노드 종류별 실행 핸들러

각 핸들러는 handler_registry에 등록되며 executor가 노드 종류로 조회합니다.
"""

"""
API 라우트 패키지

각 기능별 라우터 모듈:
- health: 헬스 체크
- stock_types: 주식 종류 / 시리즈
- shareholders: 주주 관리 및 보유 현황
- ledger: 원장 조회 및 발행 / 양도 / 소각
- reports: Ownership / Capital Stock / 주주 명세서
"""

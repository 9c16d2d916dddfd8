"""
Domain 패키지

도메인 엔티티, 값 객체, 포트, 예외를 정의합니다.
외부 의존성 없이 순수한 비즈니스 규칙만 포함합니다.

주요 엔티티:
- Account: Gmail 위임 권한 계정 정보
- Credentials: OAuth 토큰 묶음
- Subscription: Gmail 푸시 알림 구독 (watch)
- RenewalResult / BatchSummary: 구독 갱신 결과
- DeliveryOutcome: 웹훅 알림 전송 결과
"""

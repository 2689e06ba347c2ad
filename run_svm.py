
"""Root-level runner for the sentiment SVM.

Delegates to ``review_sentiment.driver``. Run
`python -m review_sentiment.driver --help` for options.
"""

from review_sentiment.driver import main

if __name__ == '__main__':
    main()

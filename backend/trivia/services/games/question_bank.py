"""Built-in questions: the fixed bank and the fallback set.

Every entry has exactly four answers and one correct index.
"""

BANK = [
    {'question': "What is the name of the Grinch's dog?",
     'answers': ['Max', 'Spot', 'Rover', 'Buddy'], 'correct': 0, 'difficulty': 'easy'},
    {'question': 'In which country did the tradition of Christmas trees originate?',
     'answers': ['England', 'Germany', 'France', 'Norway'], 'correct': 1, 'difficulty': 'medium'},
    {'question': 'What plant is traditionally hung for people to kiss under?',
     'answers': ['Holly', 'Ivy', 'Mistletoe', 'Poinsettia'], 'correct': 2, 'difficulty': 'easy'},
    {'question': "How many reindeer pull Santa's sleigh, including Rudolph?",
     'answers': ['6', '7', '8', '9'], 'correct': 3, 'difficulty': 'medium'},
    {'question': 'What is the best-selling Christmas single of all time?',
     'answers': ['Jingle Bells', 'White Christmas', 'Silent Night', 'Last Christmas'], 'correct': 1, 'difficulty': 'hard'},
    {'question': "In 'Home Alone', where is Kevin's family flying to?",
     'answers': ['London', 'Rome', 'Paris', 'Madrid'], 'correct': 2, 'difficulty': 'easy'},
    {'question': 'What color is the Grinch?',
     'answers': ['Blue', 'Purple', 'Green', 'Red'], 'correct': 2, 'difficulty': 'easy'},
    {'question': "What is Frosty the Snowman's nose made of?",
     'answers': ['Carrot', 'Coal', 'Button', 'Corn cob'], 'correct': 2, 'difficulty': 'medium'},
    {'question': 'Which reindeer has a red nose?',
     'answers': ['Dasher', 'Dancer', 'Rudolph', 'Prancer'], 'correct': 2, 'difficulty': 'easy'},
    {'question': 'What do children traditionally leave out for Santa in the US?',
     'answers': ['Cake and tea', 'Cookies and milk', 'Pie and coffee', 'Candy and juice'], 'correct': 1, 'difficulty': 'easy'},
    {'question': "Which film features the line 'You'll shoot your eye out!'?",
     'answers': ['Elf', 'A Christmas Story', 'Home Alone', 'The Polar Express'], 'correct': 1, 'difficulty': 'medium'},
    {'question': "What is the name of Scrooge's late business partner in A Christmas Carol?",
     'answers': ['Bob Cratchit', 'Jacob Marley', 'Fred', 'Tiny Tim'], 'correct': 1, 'difficulty': 'medium'},
    {'question': 'What gift did the Little Drummer Boy give?',
     'answers': ['Gold', 'A song', 'Myrrh', 'Frankincense'], 'correct': 1, 'difficulty': 'easy'},
    {'question': "In the film 'Elf', which food group do elves stick to?",
     'answers': ['Vegetables', 'Candy', 'Meat', 'Dairy'], 'correct': 1, 'difficulty': 'medium'},
    {'question': "Who is the villain in 'The Nightmare Before Christmas'?",
     'answers': ['Oogie Boogie', 'Jack Skellington', 'Dr. Finkelstein', 'The Mayor'], 'correct': 0, 'difficulty': 'hard'},
    {'question': 'Which song was originally written for Thanksgiving?',
     'answers': ['White Christmas', 'Jingle Bells', 'Winter Wonderland', 'Silver Bells'], 'correct': 1, 'difficulty': 'hard'},
    {'question': 'How many gifts in total are given in The Twelve Days of Christmas?',
     'answers': ['78', '144', '364', '12'], 'correct': 2, 'difficulty': 'very_hard'},
    {'question': 'Which country sends London a Christmas tree for Trafalgar Square every year?',
     'answers': ['Sweden', 'Norway', 'Denmark', 'Finland'], 'correct': 1, 'difficulty': 'hard'},
    {'question': "What are the Three Wise Men's gifts besides gold and frankincense?",
     'answers': ['Myrrh', 'Silver', 'Silk', 'Spices'], 'correct': 0, 'difficulty': 'easy'},
    {'question': 'In which year did Christmas become a federal holiday in the United States?',
     'answers': ['1776', '1870', '1901', '1941'], 'correct': 1, 'difficulty': 'very_hard'},
]

FALLBACK_QUESTIONS = [
    {'question': "What is the name of the Grinch's dog?",
     'answers': ['Max', 'Buddy', 'Rex', 'Spot'], 'correct': 0, 'difficulty': 'easy'},
    {'question': 'In which country did the tradition of putting up a Christmas tree originate?',
     'answers': ['England', 'Germany', 'France', 'Sweden'], 'correct': 1, 'difficulty': 'medium'},
    {'question': 'Which Christmas song was originally written for Thanksgiving?',
     'answers': ['White Christmas', 'Jingle Bells', 'Winter Wonderland', 'Silver Bells'], 'correct': 1, 'difficulty': 'hard'},
    {'question': 'In which year did Coca-Cola start using Santa in its advertisements?',
     'answers': ['1915', '1931', '1942', '1950'], 'correct': 1, 'difficulty': 'very_hard'},
]
